"""CRUD and pagination over a repository collaborator.

``Service`` holds the query conveniences actions reach for (find, search,
filter, sort, paginate); storage lives behind the ``Repository`` protocol.
Records are plain dicts keyed by column name with an ``id`` primary key.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
import copy
from dataclasses import dataclass
from datetime import UTC, datetime
import itertools
import logging
import math
import threading
from typing import Any, ClassVar, Literal, Protocol, TypeAlias, runtime_checkable

from actionlayer.errors import GenericFailure

log = logging.getLogger(__name__)

Record: TypeAlias = dict[str, Any]
DELETED_AT = "deleted_at"
SortDirection = Literal["asc", "desc"]


@runtime_checkable
class Repository(Protocol):
    """Persistence collaborator consumed by services."""

    def get(self, record_id: int) -> Record | None: ...  # noqa: D102
    def all(self) -> list[Record]: ...  # noqa: D102
    def add(self, values: Mapping[str, Any]) -> Record: ...  # noqa: D102
    def update(self, record_id: int, values: Mapping[str, Any]) -> Record | None: ...  # noqa: D102
    def delete(self, record_id: int) -> bool: ...  # noqa: D102


class InMemoryRepository:
    """Thread-safe dict-backed repository.

    Assigns incrementing ids and UTC ``created_at``/``updated_at`` stamps.
    Reads return copies so callers cannot mutate stored state.
    """

    def __init__(self) -> None:
        self._records: dict[int, Record] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[InMemoryRepository]:
        """Hold the repository lock so check-then-write sequences are atomic."""
        with self._lock:
            yield self

    def get(self, record_id: int) -> Record | None:
        with self._lock:
            record = self._records.get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def all(self) -> list[Record]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._records.values()]

    def add(self, values: Mapping[str, Any]) -> Record:
        with self._lock:
            now = datetime.now(UTC)
            record_id = next(self._ids)
            record = {**copy.deepcopy(dict(values)), "id": record_id}
            record.setdefault("created_at", now)
            record.setdefault("updated_at", now)
            self._records[record_id] = record
            return copy.deepcopy(record)

    def update(self, record_id: int, values: Mapping[str, Any]) -> Record | None:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                return None
            changes = {k: v for k, v in values.items() if k != "id"}
            record.update(copy.deepcopy(changes))
            record["updated_at"] = datetime.now(UTC)
            return copy.deepcopy(record)

    def delete(self, record_id: int) -> bool:
        with self._lock:
            return self._records.pop(record_id, None) is not None


@dataclass(frozen=True, slots=True)
class Page:
    """One page of a paginated query."""

    items: list[Record]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def has_more(self) -> bool:
        return self.page < self.last_page

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.items,
            "total": self.total,
            "page": self.page,
            "per_page": self.per_page,
            "last_page": self.last_page,
        }


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or (
        isinstance(value, list | tuple | set | frozenset) and not value
    )


def _contains(value: Any, needle: str) -> bool:
    # Null columns never match a search, like SQL LIKE
    return value is not None and needle in str(value).lower()


def _sort_key(column: str):
    # None values sort first ascending and last descending
    def key(record: Record) -> tuple[bool, Any]:
        value = record.get(column)
        return (value is not None, value)

    return key


class Service:
    """Base class for record services.

    Subclasses tune ``searchable_fields`` and ``per_page``. Records whose
    ``deleted_at`` is set are soft-deleted: every read skips them until
    ``restore`` clears the stamp.
    """

    searchable_fields: ClassVar[tuple[str, ...]] = ("name",)
    per_page: ClassVar[int] = 10

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    def _live(self) -> list[Record]:
        return [r for r in self.repository.all() if r.get(DELETED_AT) is None]

    def _get_live(self, record_id: int) -> Record | None:
        record = self.repository.get(record_id)
        return record if record is not None and record.get(DELETED_AT) is None else None

    # --- Lookups ---

    def find_by_id(self, record_id: int) -> Record | None:
        return self._get_live(record_id)

    def find_by_id_or_fail(self, record_id: int) -> Record:
        """Return the record or raise ``GenericFailure`` with status 404."""
        record = self._get_live(record_id)
        if record is None:
            raise GenericFailure(f"Record {record_id} not found", status_code=404)
        return record

    def find_by(self, field: str, value: Any) -> Record | None:
        return next((r for r in self._live() if r.get(field) == value), None)

    def get_all(self) -> list[Record]:
        return self._live()

    def get_active(self) -> list[Record]:
        return [r for r in self._live() if r.get("status") == "active"]

    def where_in(self, field: str, values: list[Any]) -> list[Record]:
        return [r for r in self._live() if r.get(field) in values]

    def where_not_in(self, field: str, values: list[Any]) -> list[Record]:
        return [r for r in self._live() if r.get(field) not in values]

    def get_latest(self, limit: int = 10, column: str = "created_at") -> list[Record]:
        return sorted(self._live(), key=_sort_key(column), reverse=True)[:limit]

    def get_oldest(self, limit: int = 10, column: str = "created_at") -> list[Record]:
        return sorted(self._live(), key=_sort_key(column))[:limit]

    def count(self, conditions: Mapping[str, Any] | None = None) -> int:
        conditions = conditions or {}
        return sum(
            1
            for r in self._live()
            if all(r.get(k) == v for k, v in conditions.items())
        )

    def exists(self, record_id: int) -> bool:
        return self._get_live(record_id) is not None

    # --- Pagination ---

    def get_paginated(
        self,
        filters: Mapping[str, Any] | None = None,
        search: str = "",
        sort_by: str = "id",
        sort_direction: SortDirection = "desc",
        per_page: int | None = None,
        page: int = 1,
    ) -> Page:
        """Search, filter, sort and slice records into a ``Page``.

        Search is a case-insensitive substring match over any of
        ``searchable_fields``. Blank filter values are ignored; list values
        match by membership.

        Raises:
            GenericFailure: On an invalid sort direction or page size (400).
        """
        if sort_direction not in ("asc", "desc"):
            raise GenericFailure(
                f"Invalid sort direction {sort_direction!r}; use 'asc' or 'desc'",
                status_code=400,
            )
        size = per_page if per_page is not None else self.per_page
        if size < 1 or page < 1:
            raise GenericFailure("per_page and page must be >= 1", status_code=400)

        records = self._live()
        needle = search.strip().lower()
        if needle:
            records = [
                r
                for r in records
                if any(_contains(r.get(f), needle) for f in self.searchable_fields)
            ]
        for field, value in (filters or {}).items():
            if _is_blank(value):
                continue
            if isinstance(value, list | tuple | set | frozenset):
                records = [r for r in records if r.get(field) in value]
            else:
                records = [r for r in records if r.get(field) == value]

        records.sort(key=_sort_key(sort_by), reverse=sort_direction == "desc")
        start = (page - 1) * size
        log.debug(
            "Paginated %s: %d matches, page %d/%d",
            type(self).__name__,
            len(records),
            page,
            max(1, math.ceil(len(records) / size)),
        )
        return Page(items=records[start : start + size], total=len(records), page=page, per_page=size)

    # --- Writes ---

    def create(self, values: Mapping[str, Any]) -> Record:
        return self.repository.add(values)

    def update(self, record_id: int, values: Mapping[str, Any]) -> Record | None:
        """Apply ``values`` and return the fresh record, or None when missing."""
        if self._get_live(record_id) is None:
            return None
        return self.repository.update(record_id, values)

    def delete(self, record_id: int) -> bool:
        """Remove the record permanently, trashed or not."""
        return self.repository.delete(record_id)

    def soft_delete(self, record_id: int) -> bool:
        """Stamp ``deleted_at``; False when the record is missing or already trashed."""
        if self._get_live(record_id) is None:
            return False
        self.repository.update(record_id, {DELETED_AT: datetime.now(UTC)})
        return True

    def restore(self, record_id: int) -> bool:
        """Clear ``deleted_at``; False unless the record is currently trashed."""
        record = self.repository.get(record_id)
        if record is None or record.get(DELETED_AT) is None:
            return False
        self.repository.update(record_id, {DELETED_AT: None})
        return True

    def get_trashed(self) -> list[Record]:
        return [r for r in self.repository.all() if r.get(DELETED_AT) is not None]


__all__ = ["InMemoryRepository", "Page", "Repository", "Service"]
