"""Existence checks against reference entities owned outside the booking core."""

from typing import Iterable

from rentalops.db.gateway import StorageGateway

# Entity name -> table. Only these tables are ever interpolated into SQL.
_REFERENCE_TABLES = {
    "client": "clients",
    "employee": "employees",
    "equipment": "equipment",
}


class ReferenceRepository:
    """Read-only lookups for clients, employees and equipment."""

    def __init__(self, gateway: StorageGateway):
        self.gateway = gateway

    async def client_exists(self, client_id: int) -> bool:
        return await self._exists("client", client_id)

    async def employee_exists(self, employee_id: int) -> bool:
        return await self._exists("employee", employee_id)

    async def equipment_exists(self, equipment_id: int) -> bool:
        return await self._exists("equipment", equipment_id)

    async def existing_ids(self, entity: str, ids: Iterable[int]) -> set[int]:
        """Return the subset of ``ids`` that exist for ``entity``."""
        wanted = sorted(set(ids))
        if not wanted:
            return set()
        table = _REFERENCE_TABLES[entity]
        rows = await self.gateway.fetch(
            f"SELECT id FROM {table} WHERE id = ANY($1::bigint[])", wanted
        )
        return {r["id"] for r in rows}

    async def _exists(self, entity: str, entity_id: int) -> bool:
        table = _REFERENCE_TABLES[entity]
        found = await self.gateway.fetchval(
            f"SELECT 1 FROM {table} WHERE id = $1", entity_id
        )
        return bool(found)
