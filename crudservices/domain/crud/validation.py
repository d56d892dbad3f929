"""Post-update validation of an entity and the DTO that changed it."""

from __future__ import annotations

from typing import Any, Iterable, List, Protocol, runtime_checkable

from pydantic import BaseModel, ValidationError
from sqlalchemy import Enum, String
from sqlalchemy.orm import MANYTOONE, Mapper

from ..status import StatusError
from .mapping import entity_mapper


@runtime_checkable
class ValidatableEntity(Protocol):  # pragma: no cover - interface only
    """Entities may expose their own business-rule checks."""

    def validate_entity(self) -> Iterable[str | StatusError]: ...


def validate_columns(entity: Any) -> List[StatusError]:
    """Required (non-nullable) and maximum-length checks from column metadata.

    A foreign key still ``None`` because its many-to-one relationship holds
    the parent is filled in at flush, so it is not reported as missing.
    """

    errors: List[StatusError] = []
    mapper = entity_mapper(type(entity))
    for prop in mapper.column_attrs:
        column = prop.columns[0]
        value = getattr(entity, prop.key, None)
        if value is None:
            if (
                not column.nullable
                and not column.primary_key
                and column.default is None
                and column.server_default is None
                and not _set_through_relationship(entity, mapper, column)
            ):
                errors.append(
                    StatusError(f"The {prop.key} field is required.", (prop.key,))
                )
            continue
        if isinstance(column.type, Enum) or not isinstance(value, str):
            continue
        length = getattr(column.type, "length", None)
        if isinstance(column.type, String) and length and len(value) > length:
            errors.append(
                StatusError(
                    f"The field {prop.key} must be a string with a maximum length of {length}.",
                    (prop.key,),
                )
            )
    return errors


def _set_through_relationship(entity: Any, mapper: Mapper, column: Any) -> bool:
    if not column.foreign_keys:
        return False
    for relationship in mapper.relationships:
        if relationship.direction is MANYTOONE and column in relationship.local_columns:
            if getattr(entity, relationship.key, None) is not None:
                return True
    return False


def validate_entity_rules(entity: Any) -> List[StatusError]:
    if not isinstance(entity, ValidatableEntity):
        return []
    errors: List[StatusError] = []
    for item in entity.validate_entity() or ():
        errors.append(item if isinstance(item, StatusError) else StatusError(str(item)))
    return errors


def validate_dto(dto: BaseModel) -> List[StatusError]:
    """Re-run pydantic validation; catches values assigned after construction."""

    try:
        type(dto).model_validate(dto.model_dump())
    except ValidationError as exc:
        errors = []
        for detail in exc.errors():
            location = ".".join(str(part) for part in detail["loc"])
            errors.append(StatusError(f"{location}: {detail['msg']}", (location,)))
        return errors
    return []


def validate_update(
    entity: Any, dto: BaseModel | None = None, *, include_dto: bool = True
) -> List[StatusError]:
    """All violations in a stable order: DTO, columns, entity rules."""

    errors: List[StatusError] = []
    if dto is not None and include_dto:
        errors.extend(validate_dto(dto))
    errors.extend(validate_columns(entity))
    errors.extend(validate_entity_rules(entity))
    return errors
