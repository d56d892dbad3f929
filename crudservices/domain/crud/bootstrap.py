"""Startup wiring: register entity operations and check DTO mappings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable

from sqlalchemy.orm import DeclarativeBase, Session

from ...config import Settings
from ...infra.logging import get_logger
from ..status import StatusGeneric
from .filters import QueryFilters
from .mapping import build_dto_mapping, entity_mapper
from .registry import OperationRegistry
from .types import CrudMessages

logger = get_logger(__name__)

SaveExceptionHandler = Callable[[Exception, Session], "StatusGeneric | None"]


@dataclass
class CrudServicesConfig:
    """Everything a :class:`CrudServices` instance needs besides its session."""

    registry: OperationRegistry = field(default_factory=OperationRegistry)
    query_filters: QueryFilters = field(default_factory=QueryFilters)
    messages: CrudMessages = field(default_factory=CrudMessages)
    validate_on_create: bool = True
    validate_on_update: bool = True
    validate_dto: bool = True
    save_exception_handler: SaveExceptionHandler | None = None


def setup_entities(
    *entity_types: type,
    dto_types: Iterable[type] = (),
    query_filters: QueryFilters | None = None,
    settings: Settings | None = None,
    save_exception_handler: SaveExceptionHandler | None = None,
) -> CrudServicesConfig:
    """Build a config for the given entities and DTOs.

    DTO mappings are resolved here so wiring mistakes surface at startup.
    """

    registry = OperationRegistry()
    for entity_type in entity_types:
        entity_mapper(entity_type)
        registry.register_entity(entity_type)

    dto_list = list(dto_types)
    for dto_type in dto_list:
        mapping = build_dto_mapping(dto_type)
        if mapping.entity_type not in entity_types:
            registry.register_entity(mapping.entity_type)

    crud_settings = settings.crud if settings is not None else None
    config = CrudServicesConfig(
        registry=registry,
        query_filters=query_filters or QueryFilters(),
        messages=CrudMessages.with_overrides(
            crud_settings.messages if crud_settings else None
        ),
        save_exception_handler=save_exception_handler,
    )
    if crud_settings is not None:
        config.validate_on_create = crud_settings.validate_on_create
        config.validate_on_update = crud_settings.validate_on_update
        config.validate_dto = crud_settings.validate_dto

    logger.info(
        "crud_setup_complete",
        extra={
            "entities": sorted(t.__name__ for t in entity_types),
            "dtos": sorted(t.__name__ for t in dto_list),
        },
    )
    return config


def setup_entities_direct(
    base: type[DeclarativeBase],
    *,
    dto_types: Iterable[type] = (),
    query_filters: QueryFilters | None = None,
    settings: Settings | None = None,
    save_exception_handler: SaveExceptionHandler | None = None,
) -> CrudServicesConfig:
    """Register every class mapped on ``base``."""

    entity_types = [mapper.class_ for mapper in base.registry.mappers]
    return setup_entities(
        *entity_types,
        dto_types=dto_types,
        query_filters=query_filters,
        settings=settings,
        save_exception_handler=save_exception_handler,
    )
