"""Storage gateway over an asyncpg connection pool.

Offers parameterized query/execute operations and an atomic transaction
scope. Repositories talk to the gateway, never to asyncpg directly.

Usage:
    gateway = StorageGateway(pool)

    rows = await gateway.fetch("SELECT * FROM jobs WHERE id = $1", job_id)

    async with gateway.transaction() as tx:
        job_id = await tx.fetchval("INSERT ... RETURNING id", ...)
        await tx.executemany("INSERT ...", rows)

A gateway returned by ``transaction()`` is bound to one connection. Calling
``transaction()`` on a bound gateway opens a savepoint on that connection,
so nested scopes commit only when the outermost scope commits.
"""

import asyncio
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Iterable, Iterator, Optional, Sequence

import structlog
from asyncpg import exceptions as pg_exc

from rentalops.errors import PersistenceError

logger = structlog.get_logger(__name__)

# Failures a caller may retry unchanged
_TRANSIENT_ERRORS = (
    pg_exc.PostgresConnectionError,
    pg_exc.InterfaceError,
    pg_exc.QueryCanceledError,
    pg_exc.TooManyConnectionsError,
    asyncio.TimeoutError,
    OSError,
)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate asyncpg/OS failures raised inside the block to PersistenceError."""
    try:
        yield
    except pg_exc.IntegrityConstraintViolationError as e:
        logger.error(
            "storage_constraint_violation",
            operation=operation,
            error_class=type(e).__name__,
            constraint=getattr(e, "constraint_name", None),
        )
        raise PersistenceError("Storage constraint violated", retryable=False) from e
    except _TRANSIENT_ERRORS as e:
        logger.error(
            "storage_unavailable",
            operation=operation,
            error_class=type(e).__name__,
            error=str(e),
        )
        raise PersistenceError("Storage temporarily unavailable", retryable=True) from e
    except pg_exc.PostgresError as e:
        logger.error(
            "storage_operation_failed",
            operation=operation,
            error_class=type(e).__name__,
            error=str(e),
        )
        raise PersistenceError("Storage operation failed", retryable=False) from e


def affected_rows(status: Optional[str]) -> int:
    """Parse the affected-row count from an asyncpg command status tag.

    >>> affected_rows("DELETE 3")
    3
    """
    if not status:
        return 0
    tail = status.rsplit(" ", 1)[-1]
    return int(tail) if tail.isdigit() else 0


class StorageGateway:
    """Parameterized access to PostgreSQL with an atomic scope."""

    def __init__(self, pool, conn=None):
        self._pool = pool
        self._conn = conn

    @property
    def pool(self):
        return self._pool

    @property
    def in_transaction(self) -> bool:
        """True when bound to the connection of an open transaction scope."""
        return self._conn is not None

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Any]:
        if self._conn is not None:
            yield self._conn
        else:
            async with self._pool.acquire() as conn:
                yield conn

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        """Run a query and return all rows as dicts."""
        with storage_errors("fetch"):
            async with self._connection() as conn:
                rows = await conn.fetch(query, *args)
        return [dict(r) for r in rows]

    async def fetchrow(self, query: str, *args: Any) -> Optional[dict[str, Any]]:
        """Run a query and return the first row as a dict, or None."""
        with storage_errors("fetchrow"):
            async with self._connection() as conn:
                row = await conn.fetchrow(query, *args)
        return dict(row) if row else None

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Run a query and return the first column of the first row."""
        with storage_errors("fetchval"):
            async with self._connection() as conn:
                return await conn.fetchval(query, *args)

    async def execute(self, query: str, *args: Any) -> int:
        """Execute a statement and return the number of affected rows."""
        with storage_errors("execute"):
            async with self._connection() as conn:
                status = await conn.execute(query, *args)
        return affected_rows(status)

    async def executemany(self, query: str, args: Iterable[Sequence[Any]]) -> None:
        """Execute a statement once per parameter tuple."""
        batch = list(args)
        if not batch:
            return
        with storage_errors("executemany"):
            async with self._connection() as conn:
                await conn.executemany(query, batch)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["StorageGateway"]:
        """Atomic scope: everything done through the yielded gateway commits
        together or rolls back together (including on cancellation).
        """
        if self._conn is not None:
            with storage_errors("savepoint"):
                async with self._conn.transaction():
                    yield self
            return

        with storage_errors("transaction"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    yield StorageGateway(self._pool, conn)
