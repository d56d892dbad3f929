"""Visibility predicates applied to entity lookups.

Filters are registered per entity type and handed to every lookup as plain
SQL criteria, so a caller can always choose the filtered or the unfiltered
view explicitly.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Sequence, Tuple

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from .mapping import entity_mapper, key_attributes
from .types import CrudConfigurationError

Predicate = Callable[[type], ColumnElement[bool]]


class QueryFilters:
    """Per-entity visibility predicates (e.g. hide soft-deleted rows)."""

    def __init__(self) -> None:
        self._predicates: Dict[type, List[Predicate]] = {}

    def register(self, entity_type: type, predicate: Predicate) -> "QueryFilters":
        entity_mapper(entity_type)
        self._predicates.setdefault(entity_type, []).append(predicate)
        return self

    def criteria_for(
        self, entity_type: type, *, ignore_query_filters: bool = False
    ) -> Tuple[ColumnElement[bool], ...]:
        if ignore_query_filters:
            return ()
        return tuple(
            predicate(entity_type) for predicate in self._predicates.get(entity_type, [])
        )

    def select(
        self, entity_type: type, *, ignore_query_filters: bool = False
    ) -> Select[Any]:
        stmt = select(entity_type)
        criteria = self.criteria_for(
            entity_type, ignore_query_filters=ignore_query_filters
        )
        if criteria:
            stmt = stmt.where(*criteria)
        return stmt

    def count(
        self,
        session: Session,
        entity_type: type,
        *,
        ignore_query_filters: bool = False,
    ) -> int:
        stmt = select(func.count()).select_from(entity_type)
        criteria = self.criteria_for(
            entity_type, ignore_query_filters=ignore_query_filters
        )
        if criteria:
            stmt = stmt.where(*criteria)
        return int(session.execute(stmt).scalar_one())


def find_by_keys(
    session: Session,
    entity_type: type,
    keys: Sequence[Any],
    *,
    criteria: Sequence[ColumnElement[bool]] = (),
) -> Any | None:
    """Load one entity by primary key, restricted by ``criteria``.

    Without criteria the identity map is consulted first (``Session.get``);
    with criteria a SELECT is always issued so hidden rows stay hidden even
    when already tracked.
    """

    names = key_attributes(entity_type)
    if len(keys) != len(names):
        raise CrudConfigurationError(
            error_code="CRUD-CONFIG-KEYS",
            message=(
                f"{entity_type.__name__} has {len(names)} key value(s) "
                f"{list(names)}, got {len(keys)}"
            ),
            details={"entity": entity_type.__name__, "keys": list(keys)},
        )
    if any(value is None for value in keys):
        return None
    if not criteria:
        identity = keys[0] if len(keys) == 1 else tuple(keys)
        return session.get(entity_type, identity)
    stmt = select(entity_type).where(
        *(getattr(entity_type, name) == value for name, value in zip(names, keys)),
        *criteria,
    )
    return session.execute(stmt).scalars().first()
