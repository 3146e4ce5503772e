"""
Unit tests for business identifier allocation
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import build_risk
from cybernexus.core.errors import ConflictError, UnavailableError
from cybernexus.core.identifiers import (
    CounterIdentifierAllocator,
    InMemorySequenceStore,
    PostgresSequenceStore,
    ScanIdentifierAllocator,
    create_allocator,
    format_finding_id,
    format_identifier,
    parse_sequence,
)


@pytest.mark.unit
class TestFormatting:

    def test_format_identifier(self):
        assert format_identifier("RISK", 7) == "RISK-0007"
        assert format_identifier("POL", 12345) == "POL-12345"

    def test_parse_sequence(self):
        assert parse_sequence("AUD-0042") == 42

    def test_format_finding_id(self):
        assert format_finding_id("AUD-0001", 2) == "AUD-0001-F02"


@pytest.mark.unit
class TestCounterAllocator:

    @pytest.mark.asyncio
    async def test_first_identifier(self, risk_allocator):
        assert await risk_allocator.next_identifier() == "RISK-0001"

    @pytest.mark.asyncio
    async def test_sequence_is_monotonic(self, risk_allocator, risk_repository):
        allocated = []
        for _ in range(3):
            risk_id = await risk_allocator.next_identifier()
            await risk_repository.add(build_risk(risk_id=risk_id))
            allocated.append(risk_id)

        assert allocated == ["RISK-0001", "RISK-0002", "RISK-0003"]

    @pytest.mark.asyncio
    async def test_seeded_from_existing_records(self, risk_repository, sequences):
        await risk_repository.add(build_risk(risk_id="RISK-0041"))
        allocator = CounterIdentifierAllocator(risk_repository, "risk_id", "RISK", sequences)

        assert await allocator.next_identifier() == "RISK-0042"

    @pytest.mark.asyncio
    async def test_concurrent_allocations_are_distinct(self, risk_allocator):
        ids = await asyncio.gather(*(risk_allocator.next_identifier() for _ in range(20)))

        assert len(set(ids)) == 20

    @pytest.mark.asyncio
    async def test_not_reused_after_delete(self, risk_allocator, risk_repository):
        first = build_risk(risk_id=await risk_allocator.next_identifier())
        await risk_repository.add(first)
        await risk_repository.delete_by_id(first.id)

        assert await risk_allocator.next_identifier() == "RISK-0002"


@pytest.mark.unit
class TestScanAllocator:

    @pytest.mark.asyncio
    async def test_last_plus_one(self, risk_repository):
        allocator = ScanIdentifierAllocator(risk_repository, "risk_id", "RISK")
        await risk_repository.add(build_risk(risk_id="RISK-0009"))

        assert await allocator.next_identifier() == "RISK-0010"

    @pytest.mark.asyncio
    async def test_race_surfaces_as_conflict(self, risk_repository):
        allocator = ScanIdentifierAllocator(risk_repository, "risk_id", "RISK")

        first_id, second_id = await asyncio.gather(allocator.next_identifier(), allocator.next_identifier())
        assert first_id == second_id == "RISK-0001"

        await risk_repository.add(build_risk(risk_id=first_id))
        with pytest.raises(ConflictError) as exc_info:
            await risk_repository.add(build_risk(risk_id=second_id))

        assert exc_info.value.details["retryable"] is True

    @pytest.mark.asyncio
    async def test_unparseable_identifier_counts_as_zero(self, risk_repository):
        allocator = ScanIdentifierAllocator(risk_repository, "risk_id", "RISK")
        await risk_repository.add(build_risk(risk_id="legacy"))

        assert await allocator.next_identifier() == "RISK-0001"


@pytest.mark.unit
class TestCreateAllocator:

    def test_strategies(self, risk_repository, sequences):
        assert isinstance(create_allocator("scan", risk_repository, "risk_id", "RISK"), ScanIdentifierAllocator)
        assert isinstance(
            create_allocator("counter", risk_repository, "risk_id", "RISK", sequences),
            CounterIdentifierAllocator,
        )

    def test_counter_requires_store(self, risk_repository):
        with pytest.raises(ValueError):
            create_allocator("counter", risk_repository, "risk_id", "RISK")

    def test_unknown_strategy(self, risk_repository):
        with pytest.raises(ValueError):
            create_allocator("random", risk_repository, "risk_id", "RISK")


def _mock_pool(conn):
    pool = MagicMock()
    acquire = MagicMock()
    acquire.__aenter__ = AsyncMock(return_value=conn)
    acquire.__aexit__ = AsyncMock(return_value=False)
    pool.acquire.return_value = acquire
    return pool


@pytest.mark.unit
class TestSequenceStores:

    @pytest.mark.asyncio
    async def test_in_memory_seeds_once(self):
        store = InMemorySequenceStore()
        seed = AsyncMock(return_value=5)

        assert await store.next_value("RISK", seed) == 6
        assert await store.next_value("RISK", seed) == 7
        seed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_postgres_existing_counter(self):
        conn = AsyncMock()
        conn.fetchval.return_value = 8
        store = PostgresSequenceStore(_mock_pool(conn))
        seed = AsyncMock(return_value=0)

        assert await store.next_value("AUD", seed) == 8
        seed.assert_not_awaited()
        assert "UPDATE sequences" in conn.fetchval.call_args.args[0]

    @pytest.mark.asyncio
    async def test_postgres_first_use_inserts_seeded_value(self):
        conn = AsyncMock()
        conn.fetchval.side_effect = [None, 4]
        store = PostgresSequenceStore(_mock_pool(conn))

        assert await store.next_value("POL", AsyncMock(return_value=3)) == 4
        insert_call = conn.fetchval.call_args_list[1]
        assert "ON CONFLICT" in insert_call.args[0]
        assert insert_call.args[1:] == ("POL", 4)

    @pytest.mark.asyncio
    async def test_postgres_connection_error(self):
        pool = MagicMock()
        pool.acquire.side_effect = OSError("connection refused")
        store = PostgresSequenceStore(pool)

        with pytest.raises(UnavailableError):
            await store.next_value("RISK", AsyncMock(return_value=0))
