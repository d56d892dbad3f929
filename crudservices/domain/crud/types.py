"""Shared CRUD dispatch types."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Union


class CrudAction(str, Enum):
    """Operations the dispatcher performs; values double as message verbs."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class FieldMapping:
    """Copy DTO fields onto entity columns of the same name."""


@dataclass(frozen=True)
class NamedOperation:
    """Invoke an operation registered on the entity type under ``operation_id``."""

    operation_id: str


UpdateDirective = Union[FieldMapping, NamedOperation]


class CrudValues:
    """Well-known directive values."""

    USE_AUTO_MAPPER = FieldMapping()


DEFAULT_MESSAGES: Dict[str, str] = {
    "created": "Successfully created a {name}",
    "updated": "Successfully updated the {name}",
    "deleted": "Successfully deleted a {name}",
    "read": "Success",
    "not_found": "Sorry, I could not find the {name} you wanted to {verb}.",
    "not_found_read": "Sorry, I could not find the {name} you were looking for.",
}


@dataclass(frozen=True)
class CrudMessages:
    """Message templates; ``{name}`` is the entity display name."""

    templates: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_MESSAGES))

    @classmethod
    def with_overrides(cls, overrides: Mapping[str, str] | None) -> "CrudMessages":
        templates = dict(DEFAULT_MESSAGES)
        for key, value in (overrides or {}).items():
            if key not in DEFAULT_MESSAGES:
                raise CrudConfigurationError(
                    error_code="CRUD-CONFIG-MESSAGE",
                    message=f"Unknown message template '{key}'",
                    details={"template": key, "known": sorted(DEFAULT_MESSAGES)},
                )
            templates[key] = value
        return cls(templates=templates)

    def success(self, action: CrudAction, entity_type: type) -> str:
        key = {
            CrudAction.CREATE: "created",
            CrudAction.UPDATE: "updated",
            CrudAction.DELETE: "deleted",
            CrudAction.READ: "read",
        }[action]
        return self.templates[key].format(name=display_name(entity_type))

    def not_found(self, action: CrudAction, entity_type: type) -> str:
        if action is CrudAction.READ:
            return self.templates["not_found_read"].format(name=display_name(entity_type))
        return self.templates["not_found"].format(
            name=display_name(entity_type), verb=action.value
        )


class CrudConfigurationError(Exception):
    """Wiring defect between DTOs, entities and registered operations."""

    def __init__(
        self,
        *,
        error_code: str,
        message: str,
        details: Dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.details = details or {}


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def display_name(entity_type: type) -> str:
    """Human name of an entity type: ``SoftDelEntity`` -> ``Soft Del Entity``."""

    explicit = getattr(entity_type, "__crud_display_name__", None)
    if explicit:
        return str(explicit)
    return _CAMEL_BOUNDARY.sub(" ", entity_type.__name__)


def utcnow() -> datetime:
    """UTC timestamp helper for event payloads."""

    return datetime.now(timezone.utc)
