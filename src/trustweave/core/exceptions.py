"""Exception hierarchy for Trustweave.

Only misuse that indicates a caller bug is raised. Policy-gate failures and
rejected events are returned as ``CheckResult`` values instead (see
``trustweave.core.results``).
"""

from __future__ import annotations

from typing import Any


class TrustweaveException(Exception):
    """Base exception for all Trustweave errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(TrustweaveException):
    """Structural input violation (empty helper list, bad timebox, ...)."""

    def __init__(self, message: str, field: str | None = None, value: Any = None) -> None:
        details: dict[str, Any] = {}
        if field is not None:
            details["field"] = field
        if value is not None:
            details["value"] = value
        super().__init__(message, details)
        self.field = field
        self.value = value


class ConfigException(TrustweaveException):
    """A parameter set failed its validation pass.

    Attributes:
        errors: Every problem found, not just the first one.
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = list(errors or [])
        super().__init__(message, {"errors": self.errors})

    @classmethod
    def from_errors(cls, owner: str, errors: list[str]) -> ConfigException:
        return cls(f"Invalid {owner}: {'; '.join(errors)}", errors)
