"""DTO to entity mapping built once per DTO type."""

from __future__ import annotations

import types
import typing
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, ClassVar, Dict, Tuple

from pydantic import BaseModel, ConfigDict
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Mapper

from .types import CrudConfigurationError


class _ReadOnly:
    """Annotated marker: the field is never copied onto the entity."""

    def __repr__(self) -> str:
        return "READ_ONLY"


READ_ONLY = _ReadOnly()


class LinkedDto(BaseModel):
    """Base for DTOs targeting one entity type.

    Subclasses set ``linked_entity`` and declare the entity's primary-key
    fields under the same names.
    """

    model_config = ConfigDict(from_attributes=True)

    linked_entity: ClassVar[type]


def entity_mapper(entity_type: type) -> Mapper:
    mapper = sa_inspect(entity_type, raiseerr=False)
    if not isinstance(mapper, Mapper):
        raise CrudConfigurationError(
            error_code="CRUD-CONFIG-NOT-MAPPED",
            message=f"{getattr(entity_type, '__name__', entity_type)} is not a mapped entity",
            details={"type": repr(entity_type)},
        )
    return mapper


def is_entity_type(candidate: Any) -> bool:
    return isinstance(candidate, type) and isinstance(
        sa_inspect(candidate, raiseerr=False), Mapper
    )


def is_linked_dto_type(candidate: Any) -> bool:
    return (
        isinstance(candidate, type)
        and issubclass(candidate, BaseModel)
        and getattr(candidate, "linked_entity", None) is not None
    )


def key_attributes(entity_type: type) -> Tuple[str, ...]:
    """Primary-key attribute names in mapper order."""

    mapper = entity_mapper(entity_type)
    return tuple(mapper.get_property_by_column(column).key for column in mapper.primary_key)


def key_values(entity: Any) -> Tuple[Any, ...]:
    return tuple(getattr(entity, name) for name in key_attributes(type(entity)))


@dataclass(frozen=True)
class DtoMapping:
    """Which DTO fields carry the key and which are copied onto the entity."""

    dto_type: type
    entity_type: type
    key_fields: Tuple[str, ...]
    copy_fields: Tuple[str, ...]

    def key_values(self, dto: BaseModel) -> Tuple[Any, ...]:
        return tuple(getattr(dto, name) for name in self.key_fields)

    def field_values(self, dto: BaseModel) -> Dict[str, Any]:
        return {name: getattr(dto, name) for name in type(dto).model_fields}

    def copy_to_entity(self, dto: BaseModel, entity: Any) -> None:
        for name in self.copy_fields:
            setattr(entity, name, getattr(dto, name))

    def copy_keys_to_entity(self, dto: BaseModel, entity: Any) -> None:
        """Supplied keys only; ``None`` leaves generation to the database."""

        for name in self.key_fields:
            value = getattr(dto, name)
            if value is not None:
                setattr(entity, name, value)

    def copy_keys_from_entity(self, entity: Any, dto: BaseModel) -> None:
        """Frozen DTOs are left as they are; the entity carries the keys."""

        if type(dto).model_config.get("frozen"):
            return
        for name in self.key_fields:
            setattr(dto, name, getattr(entity, name))


def linked_entity_type(dto_type: type) -> type:
    entity_type = getattr(dto_type, "linked_entity", None)
    if entity_type is None:
        raise CrudConfigurationError(
            error_code="CRUD-CONFIG-NOT-LINKED",
            message=f"{dto_type.__name__} does not declare linked_entity",
            details={"dto": dto_type.__name__},
        )
    return entity_type


@lru_cache(maxsize=None)
def build_dto_mapping(dto_type: type) -> DtoMapping:
    """Resolve and check the mapping for ``dto_type``; cached per type."""

    entity_type = linked_entity_type(dto_type)
    mapper = entity_mapper(entity_type)
    keys = key_attributes(entity_type)
    fields = dto_type.model_fields

    missing_keys = [name for name in keys if name not in fields]
    if missing_keys:
        raise CrudConfigurationError(
            error_code="CRUD-CONFIG-KEYS",
            message=(
                f"{dto_type.__name__} must declare the key fields {list(keys)} "
                f"of {entity_type.__name__}"
            ),
            details={"dto": dto_type.__name__, "missing": missing_keys},
        )

    columns = {prop.key: prop.columns[0] for prop in mapper.column_attrs}
    copy_fields = []
    for name, info in fields.items():
        if name in keys or name not in columns:
            continue
        if any(marker is READ_ONLY for marker in info.metadata):
            continue
        _check_compatible(dto_type, name, info.annotation, columns[name], entity_type)
        copy_fields.append(name)

    return DtoMapping(
        dto_type=dto_type,
        entity_type=entity_type,
        key_fields=keys,
        copy_fields=tuple(copy_fields),
    )


def _check_compatible(
    dto_type: type, name: str, annotation: Any, column: Any, entity_type: type
) -> None:
    try:
        column_type = column.type.python_type
    except NotImplementedError:
        return
    dto_class = _plain_class(annotation)
    if dto_class is None:
        return
    if issubclass(dto_class, column_type):
        return
    if column_type is float and dto_class is int:
        return
    raise CrudConfigurationError(
        error_code="CRUD-CONFIG-TYPES",
        message=(
            f"{dto_type.__name__}.{name} ({dto_class.__name__}) cannot be copied to "
            f"{entity_type.__name__}.{name} ({column_type.__name__})"
        ),
        details={"dto": dto_type.__name__, "field": name},
    )


def _plain_class(annotation: Any) -> type | None:
    """Unwrap ``Optional[X]`` / ``X | None``; ``None`` when not a single class."""

    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) != 1:
            return None
        return _plain_class(args[0])
    if isinstance(annotation, type) and origin is None:
        return annotation
    return None
