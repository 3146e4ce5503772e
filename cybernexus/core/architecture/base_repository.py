"""
📊 Base Repository Pattern
Abstract document repository with pre-save hooks and unique business keys
"""

import json
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, Generic, List, Optional, Sequence, Type, TypeVar, Union
from uuid import UUID

import asyncpg
from pydantic import BaseModel

from cybernexus.core.errors import ConflictError, UnavailableError, ValidationError
from cybernexus.core.logging import get_logger
from cybernexus.core.timeutils import utcnow

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

# Hook signature: (entity, is_new) -> entity to persist
PreSaveHook = Callable[[Any, bool], Any]

# Entities declaring this field are written with a compare-and-set on it
VERSION_FIELD = "version"


class SortDirection(str, Enum):
    """Sort direction"""
    ASC = "asc"
    DESC = "desc"


@dataclass
class QueryFilter:
    """Query filter"""
    field: str
    operator: str  # eq, ne, gt, lt, gte, lte, in, not_in, like
    value: Any


@dataclass
class SortOrder:
    """Sort order"""
    field: str
    direction: SortDirection = SortDirection.ASC


@dataclass
class PageRequest:
    """Pagination request, 1-based page number"""
    page: int = 1
    size: int = 10
    sort: List[SortOrder] = field(default_factory=list)


@dataclass
class PageResult(Generic[T]):
    """Paginated result"""
    items: List[T]
    total_items: int
    total_pages: int
    current_page: int
    page_size: int

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1


def _total_pages(total: int, size: int) -> int:
    return (total + size - 1) // size if size > 0 else 0


def _plain(value: Any) -> Any:
    """Normalize enums for comparisons"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple, set)):
        return [_plain(v) for v in value]
    return value


class BaseRepository(ABC, Generic[T]):
    """Abstract document repository"""

    def __init__(self, name: str, entity_class: Type[T], unique_field: Optional[str] = None):
        self.name = name
        self.entity_class = entity_class
        self.unique_field = unique_field
        self._pre_save_hooks: List[PreSaveHook] = []
        self.versioned = VERSION_FIELD in entity_class.model_fields

    def register_pre_save_hook(self, hook: PreSaveHook) -> None:
        """Run `hook` on every entity immediately before it is persisted"""
        self._pre_save_hooks.append(hook)

    def _apply_pre_save_hooks(self, entity: T, is_new: bool) -> T:
        for hook in self._pre_save_hooks:
            entity = hook(entity, is_new)
        return entity

    @abstractmethod
    async def get(self, id: UUID) -> Optional[T]:
        """Find entity by id"""

    @abstractmethod
    async def find_by_criteria(self, filters: List[QueryFilter],
                               page_request: Optional[PageRequest] = None) -> Union[List[T], PageResult[T]]:
        """Find entities matching every filter"""

    @abstractmethod
    async def _insert(self, entity: T) -> T:
        """Insert a new entity"""

    @abstractmethod
    async def _replace(self, entity: T, expected_version: Optional[int] = None) -> Optional[T]:
        """
        Overwrite an existing entity, None if it no longer exists.

        With `expected_version` the write only happens while the stored
        version still equals it, otherwise ConflictError is raised.
        """

    @abstractmethod
    async def delete_by_id(self, id: UUID) -> bool:
        """Hard delete by id"""

    @abstractmethod
    async def count(self, filters: Optional[List[QueryFilter]] = None) -> int:
        """Count entities"""

    async def add(self, entity: T) -> T:
        """Insert entity after running pre-save hooks"""
        entity = self._apply_pre_save_hooks(entity, True)
        return await self._insert(entity)

    async def update(self, entity: T) -> Optional[T]:
        """
        Overwrite entity after running pre-save hooks.

        Versioned entities must carry the version they were read with; the
        stored copy is bumped to the next version.
        """
        entity = self._apply_pre_save_hooks(entity, False)
        if not self.versioned:
            return await self._replace(entity)

        expected_version = getattr(entity, VERSION_FIELD)
        entity = entity.model_copy(update={VERSION_FIELD: expected_version + 1})
        return await self._replace(entity, expected_version)

    def _stale_write(self, entity: T, expected_version: int) -> ConflictError:
        logger.warning("Stale write rejected", collection=self.name, id=str(entity.id), version=expected_version)
        return ConflictError(
            f"{self.name}: '{entity.id}' was modified by another request, reload and retry",
            field=VERSION_FIELD,
            value=expected_version,
        )

    async def find_all(self, page_request: Optional[PageRequest] = None) -> Union[List[T], PageResult[T]]:
        return await self.find_by_criteria([], page_request)

    async def find_first(self, filters: Optional[List[QueryFilter]] = None,
                         sort: Optional[List[SortOrder]] = None) -> Optional[T]:
        """Find first entity matching the filters"""
        result = await self.find_by_criteria(filters or [], PageRequest(page=1, size=1, sort=sort or []))
        return result.items[0] if result.items else None

    async def find_by_field(self, field: str, value: Any) -> List[T]:
        return await self.find_by_criteria([QueryFilter(field=field, operator="eq", value=value)])

    async def latest(self, field: str = "created_at") -> Optional[T]:
        """Most recently created entity"""
        return await self.find_first(sort=[SortOrder(field, SortDirection.DESC)])

    async def exists_by_field(self, field: str, value: Any) -> bool:
        return await self.count([QueryFilter(field=field, operator="eq", value=value)]) > 0


class InMemoryRepository(BaseRepository[T]):
    """In-memory repository for tests and local development"""

    def __init__(self, name: str, entity_class: Type[T], unique_field: Optional[str] = None):
        super().__init__(name, entity_class, unique_field)
        self._data: Dict[UUID, T] = {}
        self.available = True

    def _check_available(self) -> None:
        if not self.available:
            raise UnavailableError(f"Collection '{self.name}' is unavailable")

    async def get(self, id: UUID) -> Optional[T]:
        self._check_available()
        entity = self._data.get(id)
        return entity.model_copy(deep=True) if entity is not None else None

    async def find_by_criteria(self, filters: List[QueryFilter],
                               page_request: Optional[PageRequest] = None) -> Union[List[T], PageResult[T]]:
        self._check_available()
        items = [e.model_copy(deep=True) for e in self._data.values() if self._matches_filters(e, filters)]

        if page_request is None:
            return items

        for sort_order in reversed(page_request.sort):
            reverse = sort_order.direction == SortDirection.DESC
            items.sort(key=lambda x: self._sort_key(getattr(x, sort_order.field, None)), reverse=reverse)

        total = len(items)
        start = (page_request.page - 1) * page_request.size
        end = start + page_request.size

        return PageResult(
            items=items[start:end],
            total_items=total,
            total_pages=_total_pages(total, page_request.size),
            current_page=page_request.page,
            page_size=page_request.size,
        )

    @staticmethod
    def _sort_key(value: Any):
        value = _plain(value)
        return (value is None, value if value is not None else 0)

    def _matches_filters(self, entity: T, filters: List[QueryFilter]) -> bool:
        for f in filters:
            entity_value = _plain(getattr(entity, f.field, None))
            value = _plain(f.value)

            if f.operator == "eq" and entity_value != value:
                return False
            elif f.operator == "ne" and entity_value == value:
                return False
            elif f.operator in ("gt", "lt", "gte", "lte"):
                if entity_value is None:
                    return False
                if f.operator == "gt" and not entity_value > value:
                    return False
                if f.operator == "lt" and not entity_value < value:
                    return False
                if f.operator == "gte" and not entity_value >= value:
                    return False
                if f.operator == "lte" and not entity_value <= value:
                    return False
            elif f.operator == "like" and str(value).lower() not in str(entity_value or "").lower():
                return False
            elif f.operator == "in" and entity_value not in value:
                return False
            elif f.operator == "not_in" and entity_value in value:
                return False

        return True

    def _check_unique(self, entity: T) -> None:
        if not self.unique_field:
            return
        value = _plain(getattr(entity, self.unique_field))
        for other in self._data.values():
            if other.id != entity.id and _plain(getattr(other, self.unique_field)) == value:
                raise ConflictError(
                    f"{self.name}: {self.unique_field} '{value}' already exists",
                    field=self.unique_field,
                    value=value,
                )

    async def _insert(self, entity: T) -> T:
        self._check_available()
        if entity.id in self._data:
            raise ConflictError(f"{self.name}: id '{entity.id}' already exists", field="id", value=entity.id)
        self._check_unique(entity)
        self._data[entity.id] = entity.model_copy(deep=True)
        return entity

    async def _replace(self, entity: T, expected_version: Optional[int] = None) -> Optional[T]:
        self._check_available()
        current = self._data.get(entity.id)
        if current is None:
            return None
        if expected_version is not None and getattr(current, VERSION_FIELD) != expected_version:
            raise self._stale_write(entity, expected_version)
        self._check_unique(entity)
        self._data[entity.id] = entity.model_copy(deep=True)
        return entity

    async def delete_by_id(self, id: UUID) -> bool:
        self._check_available()
        return self._data.pop(id, None) is not None

    async def count(self, filters: Optional[List[QueryFilter]] = None) -> int:
        self._check_available()
        return sum(1 for e in self._data.values() if self._matches_filters(e, filters or []))


_SQL_OPERATORS = {"eq": "=", "ne": "!=", "gt": ">", "lt": "<", "gte": ">=", "lte": "<="}


class PostgresDocumentRepository(BaseRepository[T]):
    """
    asyncpg repository storing each entity as a JSONB document.

    Table layout: id uuid, business_key text unique, created_at timestamptz, data jsonb.
    """

    def __init__(self, db_pool, table_name: str, entity_class: Type[T], unique_field: Optional[str] = None):
        super().__init__(table_name, entity_class, unique_field)
        self.db_pool = db_pool
        self.table_name = table_name

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Any]:
        """Acquire a connection and translate driver errors"""
        try:
            async with self.db_pool.acquire() as conn:
                yield conn
        except asyncpg.exceptions.UniqueViolationError as e:
            raise ConflictError(
                f"{self.table_name}: {self.unique_field or 'id'} already exists",
                field=self.unique_field,
            ) from e
        except (OSError, asyncpg.exceptions.PostgresConnectionError,
                asyncpg.exceptions.InterfaceError, TimeoutError) as e:
            logger.error("Store unavailable", table=self.table_name, error=str(e))
            raise UnavailableError(f"Collection '{self.table_name}' is unavailable") from e

    async def create_schema(self) -> None:
        async with self._connection() as conn:
            await conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table_name} (
                    id UUID PRIMARY KEY,
                    business_key TEXT UNIQUE,
                    created_at TIMESTAMPTZ NOT NULL,
                    data JSONB NOT NULL
                )
            """)

    async def get(self, id: UUID) -> Optional[T]:
        async with self._connection() as conn:
            row = await conn.fetchrow(f"SELECT data FROM {self.table_name} WHERE id = $1", id)
            return self._row_to_entity(row) if row else None

    async def find_by_criteria(self, filters: List[QueryFilter],
                               page_request: Optional[PageRequest] = None) -> Union[List[T], PageResult[T]]:
        where_clause, params = self._build_where_clause(filters)

        async with self._connection() as conn:
            if page_request is None:
                rows = await conn.fetch(
                    f"SELECT data FROM {self.table_name} {where_clause} ORDER BY created_at", *params
                )
                return [self._row_to_entity(row) for row in rows]

            order_by = self._build_order_by(page_request.sort)
            offset = (page_request.page - 1) * page_request.size
            query = (
                f"SELECT data FROM {self.table_name} {where_clause} {order_by} "
                f"LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}"
            )
            rows = await conn.fetch(query, *params, page_request.size, offset)
            total = await conn.fetchval(f"SELECT COUNT(*) FROM {self.table_name} {where_clause}", *params)

        return PageResult(
            items=[self._row_to_entity(row) for row in rows],
            total_items=total,
            total_pages=_total_pages(total, page_request.size),
            current_page=page_request.page,
            page_size=page_request.size,
        )

    async def _insert(self, entity: T) -> T:
        async with self._connection() as conn:
            await conn.execute(
                f"INSERT INTO {self.table_name} (id, business_key, created_at, data) "
                f"VALUES ($1, $2, $3, $4::jsonb)",
                entity.id, self._business_key(entity), self._created_at(entity), self._entity_to_json(entity),
            )
        return entity

    async def _replace(self, entity: T, expected_version: Optional[int] = None) -> Optional[T]:
        query = f"UPDATE {self.table_name} SET business_key = $2, data = $3::jsonb WHERE id = $1"
        params = [entity.id, self._business_key(entity), self._entity_to_json(entity)]
        if expected_version is not None:
            query += f" AND COALESCE((data->>'{VERSION_FIELD}')::int, 0) = $4"
            params.append(expected_version)

        async with self._connection() as conn:
            result = await conn.execute(query, *params)
            if result == "UPDATE 1":
                return entity
            if expected_version is not None and await conn.fetchval(
                f"SELECT 1 FROM {self.table_name} WHERE id = $1", entity.id
            ):
                raise self._stale_write(entity, expected_version)
        return None

    async def delete_by_id(self, id: UUID) -> bool:
        async with self._connection() as conn:
            result = await conn.execute(f"DELETE FROM {self.table_name} WHERE id = $1", id)
        return result == "DELETE 1"

    async def count(self, filters: Optional[List[QueryFilter]] = None) -> int:
        where_clause, params = self._build_where_clause(filters or [])
        async with self._connection() as conn:
            return await conn.fetchval(f"SELECT COUNT(*) FROM {self.table_name} {where_clause}", *params)

    def _row_to_entity(self, row) -> T:
        data = row["data"]
        if isinstance(data, str):
            data = json.loads(data)
        return self.entity_class.model_validate(data)

    @staticmethod
    def _entity_to_json(entity: T) -> str:
        return entity.model_dump_json()

    def _business_key(self, entity: T) -> Optional[str]:
        if not self.unique_field:
            return None
        value = _plain(getattr(entity, self.unique_field))
        return str(value) if value is not None else None

    @staticmethod
    def _created_at(entity: T) -> datetime:
        return getattr(entity, "created_at")

    def _check_field(self, field: str) -> None:
        """Field names are interpolated into SQL, so only model fields are accepted"""
        if field not in self.entity_class.model_fields:
            raise ValueError(f"Unknown field for {self.table_name}: {field}")

    @staticmethod
    def _column(field: str, value: Any) -> str:
        """SQL expression for a document field, cast to match the parameter type"""
        if field == "id":
            return "id"
        if field == "created_at":
            return "created_at"
        expr = f"(data->>'{field}')"
        if isinstance(value, bool):
            return f"{expr}::boolean"
        if isinstance(value, (int, float, Decimal)):
            return f"{expr}::numeric"
        if isinstance(value, datetime):
            return f"{expr}::timestamptz"
        return expr

    @staticmethod
    def _param(value: Any) -> Any:
        value = _plain(value)
        if isinstance(value, UUID):
            return str(value)
        return value

    def _build_where_clause(self, filters: List[QueryFilter]) -> tuple:
        if not filters:
            return "", []

        conditions = []
        params: List[Any] = []

        for f in filters:
            self._check_field(f.field)
            if f.operator in _SQL_OPERATORS:
                value = self._param(f.value)
                if f.field == "id":
                    value = f.value
                params.append(value)
                conditions.append(f"{self._column(f.field, f.value)} {_SQL_OPERATORS[f.operator]} ${len(params)}")
            elif f.operator == "like":
                params.append(f"%{f.value}%")
                conditions.append(f"(data->>'{f.field}') ILIKE ${len(params)}")
            elif f.operator in ("in", "not_in"):
                params.append([str(self._param(v)) for v in f.value])
                negate = "NOT " if f.operator == "not_in" else ""
                conditions.append(f"{negate}((data->>'{f.field}') = ANY(${len(params)}::text[]))")
            else:
                raise ValueError(f"Unsupported operator: {f.operator}")

        return "WHERE " + " AND ".join(conditions), params

    def _build_order_by(self, sort_orders: List[SortOrder]) -> str:
        if not sort_orders:
            return "ORDER BY created_at"

        order_parts = []
        for sort_order in sort_orders:
            self._check_field(sort_order.field)
            direction = "ASC" if sort_order.direction == SortDirection.ASC else "DESC"
            column = "created_at" if sort_order.field == "created_at" else f"data->'{sort_order.field}'"
            order_parts.append(f"{column} {direction}")

        return "ORDER BY " + ", ".join(order_parts)


def stamp_updated_at(entity: T, is_new: bool) -> T:
    """Pre-save hook refreshing `updated_at` on every write"""
    if "updated_at" in type(entity).model_fields:
        entity = entity.model_copy(update={"updated_at": utcnow()})
    return entity


def merge_changes(entity: T, changes: BaseModel, nullable: Sequence[str] = ()) -> T:
    """
    Apply a partial update schema to an entity and revalidate the result.

    Fields the caller did not send are left alone; an explicit null only
    clears fields listed in `nullable`.
    """
    data = changes.model_dump(exclude_unset=True)
    data = {k: v for k, v in data.items() if v is not None or k in nullable}
    return type(entity).model_validate({**entity.model_dump(), **data})


def page_request_for(entity_class: Type[BaseModel], page: int, size: int,
                     sort_by: Optional[str] = None, sort_order: str = "desc") -> PageRequest:
    """Build a PageRequest for a listing, rejecting unknown sort fields"""
    sort = []
    if sort_by:
        if sort_by not in entity_class.model_fields:
            raise ValidationError(errors=[{"field": "sort_by", "message": f"Cannot sort by '{sort_by}'"}])
        sort.append(SortOrder(sort_by, SortDirection(sort_order)))
    return PageRequest(page=page, size=size, sort=sort)
