"""Startup registry of entity domain operations.

Entity methods that change protected state are marked with
:func:`update_operation` (or factories with :func:`create_operation`) and
collected once per entity type. Dispatch then resolves operation ids against
this registry instead of looking attributes up by name at call time.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Tuple, TypeVar

from sqlalchemy.orm import Session

from ...infra.logging import get_logger
from .types import (
    CrudConfigurationError,
    FieldMapping,
    NamedOperation,
    UpdateDirective,
)

logger = get_logger(__name__)

OPERATION_MARKER = "__crud_operation__"
SESSION_PARAMETER = "session"

F = TypeVar("F", bound=Callable[..., Any])


class OperationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class OperationParameter:
    name: str
    required: bool

    @property
    def is_session(self) -> bool:
        return self.name == SESSION_PARAMETER


@dataclass(frozen=True)
class RegisteredOperation:
    """An entity operation with its parameter list resolved at registration."""

    entity_type: type
    operation_id: str
    kind: OperationKind
    func: Callable[..., Any]
    parameters: Tuple[OperationParameter, ...]

    def matches(self, available: Iterable[str]) -> bool:
        """True when every required parameter is available and at least one is used.

        Parameterless operations never match; they must be named explicitly.
        """

        names = set(available)
        params = [param for param in self.parameters if not param.is_session]
        return any(param.name in names for param in params) and all(
            param.name in names for param in params if param.required
        )

    def bind(self, values: Mapping[str, Any], session: Session) -> Dict[str, Any]:
        """Build keyword arguments from DTO values, matched by parameter name."""

        kwargs: Dict[str, Any] = {}
        missing: List[str] = []
        for param in self.parameters:
            if param.is_session:
                kwargs[param.name] = session
            elif param.name in values:
                kwargs[param.name] = values[param.name]
            elif param.required:
                missing.append(param.name)
        if missing:
            raise CrudConfigurationError(
                error_code="CRUD-CONFIG-PARAMETERS",
                message=(
                    f"Cannot match parameters {missing} of "
                    f"{self.entity_type.__name__}.{self.operation_id} to DTO fields"
                ),
                details={
                    "entity": self.entity_type.__name__,
                    "operation": self.operation_id,
                    "missing": missing,
                    "available": sorted(values),
                },
            )
        return kwargs


def update_operation(name: str | None = None) -> Callable[[F], F]:
    """Mark an entity method as a named update operation."""

    def decorator(func: F) -> F:
        setattr(func, OPERATION_MARKER, (OperationKind.UPDATE, name or func.__name__))
        return func

    return decorator


def create_operation(name: str | None = None) -> Callable[[F], F]:
    """Mark a factory (apply beneath ``@classmethod``/``@staticmethod``)."""

    def decorator(func: F) -> F:
        setattr(func, OPERATION_MARKER, (OperationKind.CREATE, name or func.__name__))
        return func

    return decorator


class OperationRegistry:
    """Operations per entity type, keyed by kind and operation id."""

    def __init__(self) -> None:
        self._operations: Dict[
            tuple[type, OperationKind], Dict[str, RegisteredOperation]
        ] = {}

    def register(
        self,
        entity_type: type,
        func: Callable[..., Any],
        *,
        name: str | None = None,
        kind: OperationKind = OperationKind.UPDATE,
    ) -> RegisteredOperation:
        operation_id = name or func.__name__
        operation = RegisteredOperation(
            entity_type=entity_type,
            operation_id=operation_id,
            kind=kind,
            func=func,
            # update operations are plain functions taking the entity first
            parameters=_parameters(func, skip_first=kind is OperationKind.UPDATE),
        )
        bucket = self._operations.setdefault((entity_type, kind), {})
        if operation_id in bucket and bucket[operation_id].func is not func:
            raise CrudConfigurationError(
                error_code="CRUD-CONFIG-DUPLICATE",
                message=(
                    f"{kind.value.title()} operation '{operation_id}' is already "
                    f"registered on {entity_type.__name__}"
                ),
                details={"entity": entity_type.__name__, "operation": operation_id},
            )
        bucket[operation_id] = operation
        logger.debug(
            "crud_operation_registered",
            extra={
                "entity": entity_type.__name__,
                "operation": operation_id,
                "kind": kind.value,
            },
        )
        return operation

    def register_entity(self, entity_type: type) -> int:
        """Register every marked operation declared on ``entity_type``."""

        count = 0
        for klass in reversed(entity_type.__mro__):
            for attr_name, attr in vars(klass).items():
                raw = attr.__func__ if isinstance(attr, (classmethod, staticmethod)) else attr
                marker = getattr(raw, OPERATION_MARKER, None)
                if marker is None:
                    continue
                kind, operation_id = marker
                if kind is OperationKind.CREATE:
                    # bind classmethods to the concrete entity type
                    func = getattr(entity_type, attr_name)
                else:
                    func = raw
                self._replace(entity_type, kind, operation_id, func)
                count += 1
        return count

    def _replace(
        self,
        entity_type: type,
        kind: OperationKind,
        operation_id: str,
        func: Callable[..., Any],
    ) -> None:
        # subclasses may override a marked method inherited from a base entity
        self._operations.get((entity_type, kind), {}).pop(operation_id, None)
        self.register(entity_type, func, name=operation_id, kind=kind)

    def operations_for(
        self, entity_type: type, kind: OperationKind
    ) -> List[RegisteredOperation]:
        return list(self._operations.get((entity_type, kind), {}).values())

    def resolve(
        self,
        entity_type: type,
        directive: UpdateDirective | str | Callable[..., Any],
        *,
        kind: OperationKind = OperationKind.UPDATE,
    ) -> RegisteredOperation:
        """Return the operation named by ``directive`` or raise."""

        bucket = self._operations.get((entity_type, kind), {})
        if isinstance(directive, FieldMapping):
            raise CrudConfigurationError(
                error_code="CRUD-CONFIG-DIRECTIVE",
                message="Field mapping does not name an operation",
                details={"entity": entity_type.__name__},
            )
        if callable(directive) and not isinstance(directive, str):
            target = getattr(directive, "__func__", directive)
            for operation in bucket.values():
                if getattr(operation.func, "__func__", operation.func) is target:
                    return operation
            operation_id = getattr(directive, "__name__", repr(directive))
        elif isinstance(directive, NamedOperation):
            operation_id = directive.operation_id
        else:
            operation_id = directive
        operation = bucket.get(operation_id)
        if operation is None:
            raise CrudConfigurationError(
                error_code="CRUD-CONFIG-UNKNOWN-OPERATION",
                message=(
                    f"No {kind.value} operation '{operation_id}' is registered "
                    f"on {entity_type.__name__}"
                ),
                details={
                    "entity": entity_type.__name__,
                    "operation": operation_id,
                    "registered": sorted(bucket),
                },
            )
        return operation

    def select_for_fields(
        self,
        entity_type: type,
        available: Iterable[str],
        *,
        kind: OperationKind = OperationKind.UPDATE,
    ) -> RegisteredOperation | None:
        """Pick the single operation the given fields can satisfy, if any."""

        names = set(available)
        candidates = [
            operation
            for operation in self.operations_for(entity_type, kind)
            if operation.matches(names)
        ]
        if len(candidates) > 1:
            raise CrudConfigurationError(
                error_code="CRUD-CONFIG-AMBIGUOUS",
                message=(
                    f"Several {kind.value} operations on {entity_type.__name__} "
                    "match the DTO; name one explicitly"
                ),
                details={
                    "entity": entity_type.__name__,
                    "candidates": sorted(op.operation_id for op in candidates),
                },
            )
        return candidates[0] if candidates else None


def _parameters(
    func: Callable[..., Any], *, skip_first: bool
) -> Tuple[OperationParameter, ...]:
    params = list(inspect.signature(func).parameters.values())
    if skip_first:
        params = params[1:]
    resolved = []
    for param in params:
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        if param.kind is param.POSITIONAL_ONLY:
            raise CrudConfigurationError(
                error_code="CRUD-CONFIG-PARAMETERS",
                message=f"Operation {func.__name__} has positional-only parameter '{param.name}'",
                details={"operation": func.__name__, "parameter": param.name},
            )
        resolved.append(
            OperationParameter(name=param.name, required=param.default is param.empty)
        )
    return tuple(resolved)
