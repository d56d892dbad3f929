"""Generic CRUD services over SQLAlchemy sessions."""

from .domain.crud import (
    READ_ONLY,
    CrudConfigurationError,
    CrudServices,
    CrudServicesConfig,
    CrudValues,
    LinkedDto,
    NamedOperation,
    QueryFilters,
    create_operation,
    setup_entities,
    setup_entities_direct,
    update_operation,
)
from .domain.status import StatusError, StatusGeneric

__all__ = [
    "CrudConfigurationError",
    "CrudServices",
    "CrudServicesConfig",
    "CrudValues",
    "LinkedDto",
    "NamedOperation",
    "QueryFilters",
    "READ_ONLY",
    "StatusError",
    "StatusGeneric",
    "create_operation",
    "setup_entities",
    "setup_entities_direct",
    "update_operation",
]
