"""Typed refusals.

Every gate in the engine answers with a ``CheckResult``: either ``valid`` or a
refusal carrying a human-readable reason, a stable code and, for policy gates,
the measured value next to the threshold it failed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a validation or policy gate."""

    valid: bool
    reason: str | None = None
    code: str | None = None
    measured: float | None = None
    required: float | None = None

    @classmethod
    def ok(cls) -> CheckResult:
        return cls(valid=True)

    @classmethod
    def refuse(
        cls,
        reason: str,
        code: str,
        measured: float | None = None,
        required: float | None = None,
    ) -> CheckResult:
        return cls(
            valid=False,
            reason=reason,
            code=code,
            measured=measured,
            required=required,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "reason": self.reason,
            "code": self.code,
            "measured": self.measured,
            "required": self.required,
        }
