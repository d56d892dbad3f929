"""Status object returned by every CRUD operation instead of raising."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Tuple

DEFAULT_SUCCESS_MESSAGE = "Success"
DEFAULT_ERROR_SEPARATOR = "\n"


@dataclass(frozen=True)
class StatusError:
    """One validation or business-rule failure."""

    message: str
    member_names: Tuple[str, ...] = ()

    def __str__(self) -> str:
        return self.message


class StatusGeneric:
    """Accumulates errors and a success message for one operation.

    ``is_valid`` is true only while no error has been added. Errors keep the
    order in which they were added. An optional ``header`` is prefixed to
    every error added through :meth:`add_error`.
    """

    def __init__(self, header: str = "") -> None:
        self.header = header
        self._errors: List[StatusError] = []
        self._success_message = DEFAULT_SUCCESS_MESSAGE
        self.result: Any = None

    @property
    def errors(self) -> Tuple[StatusError, ...]:
        return tuple(self._errors)

    @property
    def is_valid(self) -> bool:
        return not self._errors

    @property
    def has_errors(self) -> bool:
        return bool(self._errors)

    @property
    def message(self) -> str:
        if self.is_valid:
            return self._success_message
        count = len(self._errors)
        return f"Failed with {count} error{'' if count == 1 else 's'}"

    @message.setter
    def message(self, value: str) -> None:
        self._success_message = value

    def add_error(self, message: str, *member_names: str) -> "StatusGeneric":
        text = f"{self.header}: {message}" if self.header else message
        self._errors.append(StatusError(text, tuple(member_names)))
        return self

    def add_validation_error(self, error: StatusError) -> "StatusGeneric":
        self._errors.append(error)
        return self

    def add_validation_errors(self, errors: Iterable[StatusError]) -> "StatusGeneric":
        self._errors.extend(errors)
        return self

    def combine_statuses(self, other: "StatusGeneric") -> "StatusGeneric":
        """Append ``other``'s errors; adopt its message when it succeeded with one."""

        self._errors.extend(other.errors)
        if (
            self.is_valid
            and other.is_valid
            and other.message != DEFAULT_SUCCESS_MESSAGE
        ):
            self._success_message = other.message
        return self

    def get_all_errors(self, separator: str = DEFAULT_ERROR_SEPARATOR) -> str:
        return separator.join(error.message for error in self._errors)

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return (
            f"{type(self).__name__}(is_valid={self.is_valid!r}, "
            f"message={self.message!r}, errors={len(self._errors)})"
        )
