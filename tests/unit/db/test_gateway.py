"""Tests for the storage gateway."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from asyncpg import exceptions as pg_exc

from rentalops.db.gateway import StorageGateway, affected_rows
from rentalops.errors import PersistenceError


def create_mock_transaction():
    """Create a mock that works as an async context manager for transactions."""
    mock = MagicMock()
    mock.__aenter__ = AsyncMock(return_value=None)
    mock.__aexit__ = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def mock_pool():
    pool = MagicMock()
    conn = AsyncMock()
    conn.execute.return_value = "UPDATE 0"
    conn.transaction = MagicMock(return_value=create_mock_transaction())
    pool.acquire.return_value.__aenter__.return_value = conn
    return pool, conn


class TestAffectedRows:
    @pytest.mark.parametrize(
        "tag,expected",
        [
            ("DELETE 3", 3),
            ("UPDATE 0", 0),
            ("INSERT 0 1", 1),
            ("CREATE TABLE", 0),
            (None, 0),
            ("", 0),
        ],
    )
    def test_parses_status_tag(self, tag, expected):
        assert affected_rows(tag) == expected


class TestQueries:
    @pytest.mark.asyncio
    async def test_fetch_returns_dicts(self, mock_pool):
        pool, conn = mock_pool
        conn.fetch.return_value = [{"id": 1}, {"id": 2}]

        rows = await StorageGateway(pool).fetch("SELECT id FROM jobs")

        assert rows == [{"id": 1}, {"id": 2}]
        conn.fetch.assert_awaited_once_with("SELECT id FROM jobs")

    @pytest.mark.asyncio
    async def test_fetchrow_none(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.return_value = None

        assert await StorageGateway(pool).fetchrow("SELECT 1 WHERE false") is None

    @pytest.mark.asyncio
    async def test_execute_returns_affected_count(self, mock_pool):
        pool, conn = mock_pool
        conn.execute.return_value = "DELETE 4"

        count = await StorageGateway(pool).execute(
            "DELETE FROM job_crew WHERE job_id = $1", 9
        )

        assert count == 4
        conn.execute.assert_awaited_once_with(
            "DELETE FROM job_crew WHERE job_id = $1", 9
        )

    @pytest.mark.asyncio
    async def test_executemany_skips_empty_batch(self, mock_pool):
        pool, conn = mock_pool

        await StorageGateway(pool).executemany("INSERT ...", [])

        conn.executemany.assert_not_awaited()
        pool.acquire.assert_not_called()


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_integrity_violation_not_retryable(self, mock_pool):
        pool, conn = mock_pool
        conn.execute.side_effect = pg_exc.ForeignKeyViolationError("fk")

        with pytest.raises(PersistenceError) as exc:
            await StorageGateway(pool).execute("INSERT ...")

        assert exc.value.retryable is False
        assert isinstance(exc.value.__cause__, pg_exc.ForeignKeyViolationError)

    @pytest.mark.asyncio
    async def test_connection_loss_retryable(self, mock_pool):
        pool, conn = mock_pool
        conn.fetch.side_effect = ConnectionRefusedError("down")

        with pytest.raises(PersistenceError) as exc:
            await StorageGateway(pool).fetch("SELECT 1")

        assert exc.value.retryable is True

    @pytest.mark.asyncio
    async def test_timeout_retryable(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchval.side_effect = asyncio.TimeoutError()

        with pytest.raises(PersistenceError) as exc:
            await StorageGateway(pool).fetchval("SELECT 1")

        assert exc.value.retryable is True

    @pytest.mark.asyncio
    async def test_message_hides_driver_detail(self, mock_pool):
        pool, conn = mock_pool
        conn.execute.side_effect = pg_exc.UniqueViolationError(
            'duplicate key value violates unique constraint "jobs_order_number_key"'
        )

        with pytest.raises(PersistenceError) as exc:
            await StorageGateway(pool).execute("INSERT ...")

        assert "jobs_order_number_key" not in str(exc.value)

    @pytest.mark.asyncio
    async def test_domain_errors_pass_through(self, mock_pool):
        pool, conn = mock_pool
        conn.fetch.side_effect = ValueError("not a storage error")

        with pytest.raises(ValueError):
            await StorageGateway(pool).fetch("SELECT 1")


class TestTransaction:
    @pytest.mark.asyncio
    async def test_yields_bound_gateway(self, mock_pool):
        pool, conn = mock_pool
        gateway = StorageGateway(pool)

        async with gateway.transaction() as tx:
            assert tx is not gateway
            assert tx.in_transaction
            await tx.execute("UPDATE jobs SET value = 0")
            await tx.execute("DELETE FROM job_crew")

        assert not gateway.in_transaction
        # One connection for the whole scope
        pool.acquire.assert_called_once()
        assert conn.execute.await_count == 2
        conn.transaction.return_value.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nested_scope_is_savepoint_on_same_connection(self, mock_pool):
        pool, conn = mock_pool

        async with StorageGateway(pool).transaction() as tx:
            async with tx.transaction() as inner:
                assert inner is tx
                await inner.execute("DELETE FROM job_line_items")

        pool.acquire.assert_called_once()
        assert conn.transaction.call_count == 2

    @pytest.mark.asyncio
    async def test_error_inside_scope_reaches_transaction_exit(self, mock_pool):
        """The driver transaction sees the exception and rolls back."""
        pool, conn = mock_pool

        with pytest.raises(RuntimeError):
            async with StorageGateway(pool).transaction() as tx:
                await tx.execute("DELETE FROM job_line_items WHERE job_id = $1", 1)
                raise RuntimeError("injected")

        exit_args = conn.transaction.return_value.__aexit__.await_args.args
        assert exit_args[0] is RuntimeError

    @pytest.mark.asyncio
    async def test_cancellation_reaches_transaction_exit(self, mock_pool):
        pool, conn = mock_pool

        with pytest.raises(asyncio.CancelledError):
            async with StorageGateway(pool).transaction():
                raise asyncio.CancelledError()

        exit_args = conn.transaction.return_value.__aexit__.await_args.args
        assert exit_args[0] is asyncio.CancelledError
