"""Generic CRUD dispatch package."""

from .bootstrap import CrudServicesConfig, setup_entities, setup_entities_direct
from .filters import QueryFilters, find_by_keys
from .mapping import READ_ONLY, DtoMapping, LinkedDto, build_dto_mapping
from .registry import (
    OperationKind,
    OperationRegistry,
    RegisteredOperation,
    create_operation,
    update_operation,
)
from .service import CrudServices
from .types import (
    CrudAction,
    CrudConfigurationError,
    CrudMessages,
    CrudValues,
    FieldMapping,
    NamedOperation,
    UpdateDirective,
    display_name,
)
from .validation import ValidatableEntity, validate_update

__all__ = [
    "CrudAction",
    "CrudConfigurationError",
    "CrudMessages",
    "CrudServices",
    "CrudServicesConfig",
    "CrudValues",
    "DtoMapping",
    "FieldMapping",
    "LinkedDto",
    "NamedOperation",
    "OperationKind",
    "OperationRegistry",
    "QueryFilters",
    "READ_ONLY",
    "RegisteredOperation",
    "UpdateDirective",
    "ValidatableEntity",
    "build_dto_mapping",
    "create_operation",
    "display_name",
    "find_by_keys",
    "setup_entities",
    "setup_entities_direct",
    "update_operation",
    "validate_update",
]
