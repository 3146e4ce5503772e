"""
Business identifier allocation.

Risks, audits and policies carry human readable identifiers such as
RISK-0007 in a per-type sequence. Findings are numbered inside their
parent audit (AUD-0001-F02).

Two allocation strategies are available:

- ScanIdentifierAllocator reads the most recently created record and adds
  one to its suffix. Two concurrent creations can read the same record;
  the losing insert then fails with ConflictError from the repository's
  uniqueness constraint.
- CounterIdentifierAllocator keeps an atomic per-type counter, seeded from
  the scan on first use.

Neither retries on conflict; that is left to the caller.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, Optional

from cybernexus.core.architecture.base_repository import BaseRepository
from cybernexus.core.errors import UnavailableError
from cybernexus.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_WIDTH = 4
FINDING_WIDTH = 2


def format_identifier(prefix: str, number: int, width: int = DEFAULT_WIDTH) -> str:
    """RISK + 7 -> RISK-0007"""
    return f"{prefix}-{number:0{width}d}"


def parse_sequence(identifier: str) -> int:
    """Numeric suffix of an identifier: RISK-0007 -> 7"""
    return int(identifier.rsplit("-", 1)[1])


def format_finding_id(audit_id: str, number: int) -> str:
    """AUD-0001 + 2 -> AUD-0001-F02"""
    return f"{audit_id}-F{number:0{FINDING_WIDTH}d}"


class SequenceStore(ABC):
    """Atomic increment-and-fetch counters keyed by sequence name"""

    @abstractmethod
    async def next_value(self, name: str, seed: Callable[[], Awaitable[int]]) -> int:
        """
        Increment and return the counter.

        `seed` supplies the current high-water mark when the counter does
        not exist yet.
        """


class InMemorySequenceStore(SequenceStore):
    """Counters guarded by an asyncio lock"""

    def __init__(self):
        self._values: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def next_value(self, name: str, seed: Callable[[], Awaitable[int]]) -> int:
        async with self._lock:
            if name not in self._values:
                self._values[name] = await seed()
            self._values[name] += 1
            return self._values[name]


class PostgresSequenceStore(SequenceStore):
    """Counters in a `sequences` table, incremented with a single statement"""

    def __init__(self, db_pool, table_name: str = "sequences"):
        self.db_pool = db_pool
        self.table_name = table_name

    async def create_schema(self) -> None:
        async with self.db_pool.acquire() as conn:
            await conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table_name} (
                    name TEXT PRIMARY KEY,
                    value BIGINT NOT NULL
                )
            """)

    async def next_value(self, name: str, seed: Callable[[], Awaitable[int]]) -> int:
        try:
            async with self.db_pool.acquire() as conn:
                value = await conn.fetchval(
                    f"UPDATE {self.table_name} SET value = value + 1 WHERE name = $1 RETURNING value",
                    name,
                )
                if value is not None:
                    return value

            start = await seed()
            async with self.db_pool.acquire() as conn:
                # A concurrent first use lands in the conflict branch and still increments
                return await conn.fetchval(
                    f"""
                    INSERT INTO {self.table_name} (name, value) VALUES ($1, $2)
                    ON CONFLICT (name) DO UPDATE SET value = {self.table_name}.value + 1
                    RETURNING value
                    """,
                    name, start + 1,
                )
        except OSError as e:
            raise UnavailableError("Sequence store is unavailable") from e


class IdentifierAllocator(ABC):
    """Produces the next identifier for one entity type"""

    def __init__(self, repository: BaseRepository, field: str, prefix: str, width: int = DEFAULT_WIDTH):
        self.repository = repository
        self.field = field
        self.prefix = prefix
        self.width = width

    async def last_allocated(self) -> int:
        """Suffix of the most recently created record, 0 if there is none"""
        latest = await self.repository.latest()
        if latest is None:
            return 0
        identifier = getattr(latest, self.field)
        try:
            return parse_sequence(identifier)
        except (ValueError, IndexError):
            logger.warning("Unparseable identifier", field=self.field, identifier=identifier)
            return 0

    @abstractmethod
    async def next_identifier(self) -> str:
        """Allocate the next identifier"""


class ScanIdentifierAllocator(IdentifierAllocator):
    """Last record + 1; not safe under concurrent creation"""

    async def next_identifier(self) -> str:
        return format_identifier(self.prefix, await self.last_allocated() + 1, self.width)


class CounterIdentifierAllocator(IdentifierAllocator):
    """Atomic counter per prefix"""

    def __init__(self, repository: BaseRepository, field: str, prefix: str,
                 store: SequenceStore, width: int = DEFAULT_WIDTH):
        super().__init__(repository, field, prefix, width)
        self.store = store

    async def next_identifier(self) -> str:
        number = await self.store.next_value(self.prefix, self.last_allocated)
        return format_identifier(self.prefix, number, self.width)


def create_allocator(strategy: str, repository: BaseRepository, field: str, prefix: str,
                     store: Optional[SequenceStore] = None) -> IdentifierAllocator:
    """Build the allocator selected by configuration"""
    if strategy == "scan":
        return ScanIdentifierAllocator(repository, field, prefix)
    if strategy == "counter":
        if store is None:
            raise ValueError("counter allocation requires a sequence store")
        return CounterIdentifierAllocator(repository, field, prefix, store)
    raise ValueError(f"Unknown allocation strategy: {strategy}")
