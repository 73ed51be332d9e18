"""
Repository port and the in-memory adapter.

Services and the generic dispatcher only talk to ``RepositoryPort``. Every
CRUD call runs inside ``transaction()``; nested transactions in the same task
join the outer one.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from contextvars import ContextVar
from typing import Any, Protocol, TypeVar, runtime_checkable

from hyperapi.core.imports import import_object
from hyperapi.errors import BadRequestError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Lazy references
# =============================================================================


class LazyReference:
    """
    Proxy for a record that is loaded on first attribute access.

    Exposes the loaded record as ``__wrapped__`` so callers can unwrap it.
    """

    __slots__ = ("_record_type", "_id", "_loader", "_target")

    def __init__(self, record_type: type, record_id: Any, loader: Callable[[], Any]):
        object.__setattr__(self, "_record_type", record_type)
        object.__setattr__(self, "_id", record_id)
        object.__setattr__(self, "_loader", loader)
        object.__setattr__(self, "_target", None)

    @property
    def __wrapped__(self) -> Any:
        if self._target is None:
            object.__setattr__(self, "_target", self._loader())
        return self._target

    def __getattr__(self, name: str) -> Any:
        return getattr(self.__wrapped__, name)

    def __repr__(self) -> str:
        return f"<LazyReference {self._record_type.__name__}#{self._id}>"


def unwrap(value: Any) -> Any:
    """Strip lazy proxies until the real record is reached."""
    seen = 0
    while hasattr(type(value), "__wrapped__") or isinstance(value, LazyReference):
        value = value.__wrapped__
        seen += 1
        if seen > 16:
            break
    return value


# =============================================================================
# Port
# =============================================================================


@runtime_checkable
class RepositoryPort(Protocol):
    """Persistence operations used by services and the dispatcher."""

    def transaction(self) -> AbstractAsyncContextManager[None]: ...

    async def find(self, record_type: type[T], record_id: Any) -> T | None: ...

    async def page(self, record_type: type[T], offset: int, limit: int | None) -> list[T]: ...

    async def count(self, record_type: type) -> int: ...

    async def persist(self, record: T, actor: str | None = None) -> T: ...

    async def merge(self, record: T, actor: str | None = None) -> T: ...

    async def delete(self, record_type: type, record_id: Any) -> bool: ...


# =============================================================================
# In-memory adapter
# =============================================================================


class InMemoryRepository:
    """
    Dict-backed repository.

    Transactions snapshot all tables on entry and restore them when the body
    raises. Stored records are copies, so callers must ``merge`` to write.

    Args:
        lazy_loading: When True, ``page`` returns ``LazyReference`` proxies
    """

    def __init__(self, lazy_loading: bool = False):
        self.lazy_loading = lazy_loading
        self._tables: dict[type, dict[Any, Any]] = {}
        self._sequences: dict[type, int] = {}
        self._lock = asyncio.Lock()
        self._depth: ContextVar[int] = ContextVar(f"hyperapi_tx_{id(self)}", default=0)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        depth = self._depth.get()
        if depth > 0:
            token = self._depth.set(depth + 1)
            try:
                yield
            finally:
                self._depth.reset(token)
            return

        async with self._lock:
            snapshot = (copy.deepcopy(self._tables), dict(self._sequences))
            token = self._depth.set(1)
            try:
                yield
            except BaseException:
                self._tables, self._sequences = snapshot
                logger.debug("Transaction rolled back")
                raise
            finally:
                self._depth.reset(token)

    def _table(self, record_type: type) -> dict[Any, Any]:
        return self._tables.setdefault(record_type, {})

    def _next_id(self, record_type: type) -> int:
        current = self._sequences.get(record_type, 0) + 1
        self._sequences[record_type] = current
        return current

    async def find(self, record_type: type[T], record_id: Any) -> T | None:
        stored = self._table(record_type).get(record_id)
        return copy.deepcopy(stored) if stored is not None else None

    async def page(self, record_type: type[T], offset: int, limit: int | None) -> list[T]:
        rows = sorted(self._table(record_type).items(), key=lambda item: item[0])
        start = max(offset, 0)
        end = start + limit if limit is not None and limit > 0 else None
        selected = rows[start:end]
        if self.lazy_loading:
            return [
                LazyReference(record_type, key, lambda v=value: copy.deepcopy(v))  # type: ignore[misc]
                for key, value in selected
            ]
        return [copy.deepcopy(value) for _, value in selected]

    async def count(self, record_type: type) -> int:
        return len(self._table(record_type))

    async def persist(self, record: T, actor: str | None = None) -> T:
        """
        Store a new record, assigning the next id when it has none.

        Raises:
            BadRequestError: A record with the same id is already stored
        """
        record_type = type(record)
        record_id = getattr(record, "id", None)
        if record_id is None:
            record.id = self._next_id(record_type)  # type: ignore[attr-defined]
        elif record_id in self._table(record_type):
            raise BadRequestError(f"{record_type.__name__} with id {record_id} already exists")
        else:
            self._sequences[record_type] = max(self._sequences.get(record_type, 0), record.id)  # type: ignore[attr-defined]
        if hasattr(record, "pre_persist"):
            record.pre_persist(actor)
        self._table(record_type)[record.id] = copy.deepcopy(record)  # type: ignore[attr-defined]
        return record

    async def merge(self, record: T, actor: str | None = None) -> T:
        record_type = type(record)
        record_id = getattr(record, "id", None)
        if record_id is None or record_id not in self._table(record_type):
            return await self.persist(record, actor)
        if hasattr(record, "pre_update"):
            record.pre_update(actor)
        self._table(record_type)[record_id] = copy.deepcopy(record)
        return record

    async def delete(self, record_type: type, record_id: Any) -> bool:
        return self._table(record_type).pop(record_id, None) is not None

    def clear(self) -> None:
        self._tables.clear()
        self._sequences.clear()


def load_repository(ref: str) -> RepositoryPort:
    """Instantiate (or fetch) the repository named by ``"package.module:Name"``."""
    target = import_object(ref)
    return target() if isinstance(target, type) else target
