"""Publishing of committed CRUD changes."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Protocol

from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CrudEvent:
    """One committed create, update or delete."""

    entity: str
    action: str
    keys: List[Any]
    operation: str | None = None
    changes: Dict[str, Any] = field(default_factory=dict)
    occurred_at: str = ""

    @property
    def topic(self) -> str:
        return f"{_snake(self.entity)}.{self.action}"

    def as_payload(self) -> Dict[str, Any]:
        return asdict(self)


class EventEmitter(Protocol):  # pragma: no cover - interface only
    def emit(self, topic: str, payload: Dict[str, Any]) -> None:
        """Receive a change after its transaction committed."""


class LoggingEventEmitter:
    """Writes each event to the log under ``<topic_prefix>.<topic>``."""

    def __init__(self, topic_prefix: str = "crud") -> None:
        self.topic_prefix = topic_prefix

    def emit(self, topic: str, payload: Dict[str, Any]) -> None:
        logger.info(
            "crud_event",
            extra={
                "topic": f"{self.topic_prefix}.{topic}",
                "entity": payload.get("entity"),
                "payload": payload,
            },
        )


_emitter: EventEmitter | None = None


def get_event_emitter() -> EventEmitter:
    global _emitter
    if _emitter is None:
        _emitter = LoggingEventEmitter()
    return _emitter


def set_event_emitter(emitter: EventEmitter | None) -> None:
    """Swap the process-wide emitter; ``None`` restores the logging default."""

    global _emitter
    _emitter = emitter


def _snake(name: str) -> str:
    chars: List[str] = []
    for index, char in enumerate(name):
        if char.isupper() and index and not name[index - 1].isupper():
            chars.append("_")
        chars.append(char.lower())
    return "".join(chars)
