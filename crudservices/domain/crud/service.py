"""CRUD dispatcher: create, read, update and delete through one unit of work."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Sequence, Tuple

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...infra.events import CrudEvent, EventEmitter, get_event_emitter
from ...infra.logging import get_logger
from ...infra.metrics import MetricsClient, get_metrics_client
from ..status import DEFAULT_SUCCESS_MESSAGE, StatusError, StatusGeneric
from .bootstrap import CrudServicesConfig
from .filters import find_by_keys
from .mapping import (
    DtoMapping,
    build_dto_mapping,
    entity_mapper,
    is_entity_type,
    is_linked_dto_type,
    key_values,
)
from .registry import OperationKind, RegisteredOperation
from .types import (
    CrudAction,
    CrudConfigurationError,
    FieldMapping,
    UpdateDirective,
    utcnow,
)
from .validation import validate_update

logger = get_logger(__name__)

FIELD_MAPPING_OPERATION = "field_mapping"
DeleteAction = Callable[[Session, Any], "StatusGeneric | None"]

_PAST_TENSE = {
    CrudAction.CREATE: "created",
    CrudAction.UPDATE: "updated",
    CrudAction.DELETE: "deleted",
    CrudAction.READ: "read",
}


class CrudServices:
    """Generic CRUD operations over one SQLAlchemy session.

    Every public operation starts a fresh :class:`StatusGeneric`, exposed as
    :attr:`status` until the next call. Not-found and validation failures are
    reported on the status and nothing is committed; wiring defects raise
    :class:`CrudConfigurationError`.
    """

    def __init__(
        self,
        session: Session,
        config: CrudServicesConfig | None = None,
        *,
        event_emitter: EventEmitter | None = None,
        metrics: MetricsClient | None = None,
    ) -> None:
        self._session = session
        self._config = config or CrudServicesConfig()
        self._event_emitter = event_emitter or get_event_emitter()
        self._metrics = metrics or get_metrics_client()
        self._status = StatusGeneric()

    # ------------------------------------------------------------------
    # Status passthrough
    # ------------------------------------------------------------------
    @property
    def session(self) -> Session:
        return self._session

    @property
    def status(self) -> StatusGeneric:
        return self._status

    @property
    def is_valid(self) -> bool:
        return self._status.is_valid

    @property
    def has_errors(self) -> bool:
        return self._status.has_errors

    @property
    def errors(self) -> Tuple[StatusError, ...]:
        return self._status.errors

    @property
    def message(self) -> str:
        return self._status.message

    def get_all_errors(self, separator: str = "\n") -> str:
        return self._status.get_all_errors(separator)

    # ------------------------------------------------------------------
    # CRUD operations
    # ------------------------------------------------------------------
    def create_and_save(
        self,
        entity_or_dto: Any,
        directive: UpdateDirective | str | Callable[..., Any] | None = None,
    ) -> StatusGeneric:
        return self._run(CrudAction.CREATE, self._create, entity_or_dto, directive)

    def read_single(self, target_type: type, *keys: Any) -> Any | None:
        return self._run(CrudAction.READ, self._read_single, target_type, keys)

    def read_many(self, target_type: type) -> List[Any]:
        return self._run(CrudAction.READ, self._read_many, target_type)

    def update_and_save(
        self,
        entity_or_dto: Any,
        directive: UpdateDirective | str | Callable[..., Any] | None = None,
    ) -> StatusGeneric:
        """Apply ``entity_or_dto`` to its stored entity and commit if valid.

        ``directive`` is :data:`CrudValues.USE_AUTO_MAPPER` to copy matching
        fields, an operation id (or the entity function itself) to call a
        registered update operation, or ``None`` to pick the one operation
        the DTO satisfies, falling back to field mapping.
        """

        return self._run(CrudAction.UPDATE, self._update, entity_or_dto, directive)

    def delete_and_save(self, entity_type: type, *keys: Any) -> StatusGeneric:
        return self._run(CrudAction.DELETE, self._delete, entity_type, keys)

    def delete_with_action_and_save(
        self, entity_type: type, action: DeleteAction, *keys: Any
    ) -> StatusGeneric:
        """Delete after ``action(session, entity)`` approves.

        The lookup ignores query filters: the action decides whether the row
        may go, which is what allows hard-deleting soft-deleted rows.
        """

        return self._run(
            CrudAction.DELETE, self._delete_with_action, entity_type, action, keys
        )

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------
    def _create(
        self,
        status: StatusGeneric,
        entity_or_dto: Any,
        directive: UpdateDirective | str | Callable[..., Any] | None,
    ) -> StatusGeneric:
        self._require(entity_or_dto, CrudAction.CREATE)
        dto: BaseModel | None = None
        mapping: DtoMapping | None = None
        operation_id = None
        if is_entity_type(type(entity_or_dto)):
            entity = entity_or_dto
            entity_type = type(entity)
        else:
            dto = entity_or_dto
            mapping = self._mapping_for(dto)
            entity_type = mapping.entity_type
            operation = self._select_operation(
                entity_type, mapping, dto, directive, OperationKind.CREATE
            )
            if operation is None:
                operation_id = FIELD_MAPPING_OPERATION
                entity = entity_type()
                mapping.copy_keys_to_entity(dto, entity)
                mapping.copy_to_entity(dto, entity)
            else:
                operation_id = operation.operation_id
                outcome = operation.func(
                    **operation.bind(mapping.field_values(dto), self._session)
                )
                entity = self._absorb_outcome(status, outcome)
                if status.has_errors:
                    return self._fail(CrudAction.CREATE, entity_type, status)
                if not isinstance(entity, entity_type):
                    raise CrudConfigurationError(
                        error_code="CRUD-CONFIG-FACTORY",
                        message=(
                            f"Create operation '{operation.operation_id}' did not "
                            f"return a {entity_type.__name__}"
                        ),
                        details={
                            "entity": entity_type.__name__,
                            "operation": operation.operation_id,
                            "returned": type(entity).__name__,
                        },
                    )

        if self._config.validate_on_create:
            status.add_validation_errors(
                validate_update(entity, dto, include_dto=self._config.validate_dto)
            )
        if status.has_errors:
            return self._fail(CrudAction.CREATE, entity_type, status)

        self._session.add(entity)
        if not self._save_changes(status):
            return self._fail(CrudAction.CREATE, entity_type, status)
        if mapping is not None and dto is not None:
            mapping.copy_keys_from_entity(entity, dto)
        status.result = entity
        self._succeeded(
            CrudAction.CREATE,
            entity_type,
            status,
            keys=key_values(entity),
            operation_id=operation_id,
            changes={},
        )
        return status

    def _read_single(
        self, status: StatusGeneric, target_type: type, keys: Sequence[Any]
    ) -> Any | None:
        entity_type = self._entity_type_of(target_type)
        entity = self._find(entity_type, keys, ignore_query_filters=False)
        if entity is None:
            self._not_found(CrudAction.READ, entity_type, status, keys)
            return None
        result = self._project(target_type, entity)
        status.result = result
        status.message = self._config.messages.success(CrudAction.READ, entity_type)
        return result

    def _read_many(self, status: StatusGeneric, target_type: type) -> List[Any]:
        entity_type = self._entity_type_of(target_type)
        stmt = self._config.query_filters.select(entity_type)
        entities = self._session.execute(stmt).scalars().all()
        results = [self._project(target_type, entity) for entity in entities]
        status.result = results
        return results

    def _update(
        self,
        status: StatusGeneric,
        entity_or_dto: Any,
        directive: UpdateDirective | str | Callable[..., Any] | None,
    ) -> StatusGeneric:
        self._require(entity_or_dto, CrudAction.UPDATE)
        if is_entity_type(type(entity_or_dto)):
            return self._update_entity(status, entity_or_dto)

        dto: BaseModel = entity_or_dto
        mapping = self._mapping_for(dto)
        entity_type = mapping.entity_type
        operation = self._select_operation(
            entity_type, mapping, dto, directive, OperationKind.UPDATE
        )
        keys = mapping.key_values(dto)
        entity = self._find(entity_type, keys, ignore_query_filters=False)
        if entity is None:
            return self._not_found(CrudAction.UPDATE, entity_type, status, keys)

        before = _snapshot(entity)
        if operation is None:
            operation_id = FIELD_MAPPING_OPERATION
            mapping.copy_to_entity(dto, entity)
        else:
            operation_id = operation.operation_id
            outcome = operation.func(
                entity, **operation.bind(mapping.field_values(dto), self._session)
            )
            self._absorb_outcome(status, outcome)
        if status.has_errors:
            return self._fail(CrudAction.UPDATE, entity_type, status)

        if self._config.validate_on_update:
            status.add_validation_errors(
                validate_update(entity, dto, include_dto=self._config.validate_dto)
            )
        if status.has_errors:
            return self._fail(CrudAction.UPDATE, entity_type, status)

        changes = _diff(before, _snapshot(entity))
        if not self._save_changes(status):
            return self._fail(CrudAction.UPDATE, entity_type, status)
        self._succeeded(
            CrudAction.UPDATE,
            entity_type,
            status,
            keys=keys,
            operation_id=operation_id,
            changes=changes,
        )
        return status

    def _update_entity(self, status: StatusGeneric, entity: Any) -> StatusGeneric:
        entity_type = type(entity)
        keys = key_values(entity)
        stored = self._find(entity_type, keys, ignore_query_filters=False)
        if stored is None:
            return self._not_found(CrudAction.UPDATE, entity_type, status, keys)
        if stored is not entity:
            entity = self._session.merge(entity)
        if self._config.validate_on_update:
            status.add_validation_errors(validate_update(entity))
        if status.has_errors:
            return self._fail(CrudAction.UPDATE, entity_type, status)
        if not self._save_changes(status):
            return self._fail(CrudAction.UPDATE, entity_type, status)
        self._succeeded(
            CrudAction.UPDATE,
            entity_type,
            status,
            keys=keys,
            operation_id=None,
            changes={},
        )
        return status

    def _delete(
        self, status: StatusGeneric, target_type: type, keys: Sequence[Any]
    ) -> StatusGeneric:
        entity_type = self._entity_type_of(target_type)
        entity = self._find(entity_type, keys, ignore_query_filters=False)
        if entity is None:
            return self._not_found(CrudAction.DELETE, entity_type, status, keys)
        return self._remove(status, entity_type, entity)

    def _delete_with_action(
        self,
        status: StatusGeneric,
        target_type: type,
        action: DeleteAction,
        keys: Sequence[Any],
    ) -> StatusGeneric:
        entity_type = self._entity_type_of(target_type)
        entity = self._find(entity_type, keys, ignore_query_filters=True)
        if entity is None:
            return self._not_found(CrudAction.DELETE, entity_type, status, keys)
        outcome = action(self._session, entity)
        if outcome is not None:
            status.combine_statuses(outcome)
        if status.has_errors:
            return self._fail(CrudAction.DELETE, entity_type, status)
        return self._remove(status, entity_type, entity)

    def _remove(
        self, status: StatusGeneric, entity_type: type, entity: Any
    ) -> StatusGeneric:
        keys = key_values(entity)
        self._session.delete(entity)
        if not self._save_changes(status):
            return self._fail(CrudAction.DELETE, entity_type, status)
        self._succeeded(
            CrudAction.DELETE,
            entity_type,
            status,
            keys=keys,
            operation_id=None,
            changes={},
        )
        return status

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _run(self, action: CrudAction, handler: Callable[..., Any], *args: Any) -> Any:
        self._status = StatusGeneric()
        try:
            return handler(self._status, *args)
        except CrudConfigurationError as exc:
            logger.error(
                "crud_configuration_error",
                extra={
                    "action": action.value,
                    "error_code": exc.error_code,
                    "details": exc.details,
                },
            )
            self._safe_metrics_increment("crud_configuration_error_total")
            raise

    @staticmethod
    def _require(entity_or_dto: Any, action: CrudAction) -> None:
        if entity_or_dto is None:
            raise ValueError(f"{action.value} needs an entity or a DTO, got None")

    def _mapping_for(self, dto: Any) -> DtoMapping:
        if not is_linked_dto_type(type(dto)):
            raise CrudConfigurationError(
                error_code="CRUD-CONFIG-TARGET",
                message=(
                    f"{type(dto).__name__} is neither a mapped entity nor a DTO "
                    "with linked_entity"
                ),
                details={"type": type(dto).__name__},
            )
        return build_dto_mapping(type(dto))

    @staticmethod
    def _entity_type_of(target_type: type) -> type:
        if is_linked_dto_type(target_type):
            return build_dto_mapping(target_type).entity_type
        if is_entity_type(target_type):
            return target_type
        entity_mapper(target_type)  # raises a configuration error
        return target_type

    @staticmethod
    def _project(target_type: type, entity: Any) -> Any:
        if is_linked_dto_type(target_type):
            return target_type.model_validate(entity, from_attributes=True)
        return entity

    def _select_operation(
        self,
        entity_type: type,
        mapping: DtoMapping,
        dto: BaseModel,
        directive: UpdateDirective | str | Callable[..., Any] | None,
        kind: OperationKind,
    ) -> RegisteredOperation | None:
        registry = self._config.registry
        if isinstance(directive, FieldMapping):
            return None
        if directive is None:
            return registry.select_for_fields(
                entity_type, mapping.field_values(dto), kind=kind
            )
        return registry.resolve(entity_type, directive, kind=kind)

    def _find(
        self, entity_type: type, keys: Sequence[Any], *, ignore_query_filters: bool
    ) -> Any | None:
        criteria = self._config.query_filters.criteria_for(
            entity_type, ignore_query_filters=ignore_query_filters
        )
        # filters see stored rows, not unsaved edits of tracked entities
        with self._session.no_autoflush:
            return find_by_keys(self._session, entity_type, keys, criteria=criteria)

    @staticmethod
    def _absorb_outcome(status: StatusGeneric, outcome: Any) -> Any:
        """Merge a returned status; return the produced value, if any."""

        if isinstance(outcome, StatusGeneric):
            status.combine_statuses(outcome)
            return outcome.result
        return outcome

    def _save_changes(self, status: StatusGeneric) -> bool:
        try:
            self._session.commit()
        except SQLAlchemyError as exc:
            handler = self._config.save_exception_handler
            handled = handler(exc, self._session) if handler is not None else None
            if handled is None or handled.is_valid:
                raise
            self._session.rollback()
            status.combine_statuses(handled)
            logger.warning(
                "crud_save_failed",
                extra={"error": type(exc).__name__, "errors": handled.get_all_errors()},
            )
            return False
        return True

    def _not_found(
        self,
        action: CrudAction,
        entity_type: type,
        status: StatusGeneric,
        keys: Sequence[Any],
    ) -> StatusGeneric:
        status.add_error(self._config.messages.not_found(action, entity_type))
        self._safe_metrics_increment("crud_not_found_total")
        logger.warning(
            "crud_not_found",
            extra={
                "action": action.value,
                "entity": entity_type.__name__,
                "keys": list(keys),
            },
        )
        return status

    def _fail(
        self, action: CrudAction, entity_type: type, status: StatusGeneric
    ) -> StatusGeneric:
        self._safe_metrics_increment(f"crud_{action.value}_failed_total")
        logger.info(
            f"crud_{action.value}_rejected",
            extra={
                "entity": entity_type.__name__,
                "errors": [error.message for error in status.errors],
            },
        )
        return status

    def _succeeded(
        self,
        action: CrudAction,
        entity_type: type,
        status: StatusGeneric,
        *,
        keys: Sequence[Any],
        operation_id: str | None,
        changes: Dict[str, Any],
    ) -> None:
        if status.message == DEFAULT_SUCCESS_MESSAGE:
            status.message = self._config.messages.success(action, entity_type)
        event = CrudEvent(
            entity=entity_type.__name__,
            action=_PAST_TENSE[action],
            keys=list(keys),
            operation=operation_id,
            changes=changes,
            occurred_at=utcnow().isoformat(),
        )
        try:
            self._event_emitter.emit(event.topic, event.as_payload())
        except Exception:  # pragma: no cover - the change is already committed
            logger.exception(
                "crud_event_emit_failed",
                extra={"topic": event.topic, "entity": event.entity},
            )
        self._safe_metrics_increment(f"crud_{action.value}_total")
        logger.info(
            f"crud_{action.value}",
            extra={
                "entity": entity_type.__name__,
                "keys": list(keys),
                "operation": operation_id,
                "changed_fields": sorted(changes),
            },
        )

    def _safe_metrics_increment(self, metric: str, value: int = 1) -> None:
        try:
            self._metrics.increment(metric, value)
        except Exception:  # pragma: no cover
            logger.exception(
                "metrics_increment_failed",
                extra={"metric": metric, "value": value},
            )


def _snapshot(entity: Any) -> Dict[str, Any]:
    mapper = entity_mapper(type(entity))
    return {prop.key: getattr(entity, prop.key) for prop in mapper.column_attrs}


def _diff(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: {"before": before.get(key), "after": value}
        for key, value in after.items()
        if before.get(key) != value
    }
