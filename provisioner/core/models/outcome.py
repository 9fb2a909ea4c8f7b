"""
Probe results and action outcomes — what the engine learned and did.

ProbeResult answers "does the system already satisfy this spec?".
ActionOutcome is the terminal state of one resource in a run.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ProbeResult(BaseModel):
    """Outcome of checking current state against a ResourceSpec.

    ``unknown`` means the probing mechanism itself is unavailable
    (a missing settings schema, no extension lister). It is "cannot
    verify", not "mismatch".
    """

    status: Literal["satisfied", "unsatisfied", "unknown"]
    reason: str = ""
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def satisfied(self) -> bool:
        return self.status == "satisfied"

    @property
    def unknown(self) -> bool:
        return self.status == "unknown"

    @classmethod
    def ok(cls, reason: str = "", **details: Any) -> ProbeResult:
        """Create a satisfied result."""
        return cls(status="satisfied", reason=reason, details=details)

    @classmethod
    def drift(cls, reason: str = "", **details: Any) -> ProbeResult:
        """Create an unsatisfied result.

        ``details`` carries what the apply step needs to do the minimum,
        e.g. which packages of a list are missing.
        """
        return cls(status="unsatisfied", reason=reason, details=details)

    @classmethod
    def unavailable(cls, reason: str) -> ProbeResult:
        """Create an unknown result."""
        return cls(status="unknown", reason=reason)


class OutcomeStatus(str, Enum):
    """Terminal states of a resource within one run."""

    APPLIED = "applied"
    SKIPPED_ALREADY_SATISFIED = "skipped_already_satisfied"
    SKIPPED_UNSUPPORTED = "skipped_unsupported"
    WARNED = "warned"
    FAILED = "failed"


class ActionOutcome(BaseModel):
    """Result of reconciling one ResourceSpec."""

    status: OutcomeStatus
    message: str = ""
    exit_code: int | None = None
    commands: list[str] = Field(default_factory=list)
    dry_run: bool = False

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def skipped(self) -> bool:
        return self.status in (
            OutcomeStatus.SKIPPED_ALREADY_SATISFIED,
            OutcomeStatus.SKIPPED_UNSUPPORTED,
        )

    @property
    def failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED

    @classmethod
    def applied(cls, message: str = "", **kwargs: Any) -> ActionOutcome:
        return cls(status=OutcomeStatus.APPLIED, message=message, **kwargs)

    @classmethod
    def already_satisfied(cls, message: str = "", **kwargs: Any) -> ActionOutcome:
        return cls(status=OutcomeStatus.SKIPPED_ALREADY_SATISFIED, message=message, **kwargs)

    @classmethod
    def unsupported(cls, message: str = "", **kwargs: Any) -> ActionOutcome:
        return cls(status=OutcomeStatus.SKIPPED_UNSUPPORTED, message=message, **kwargs)

    @classmethod
    def warned(cls, message: str, **kwargs: Any) -> ActionOutcome:
        return cls(status=OutcomeStatus.WARNED, message=message, **kwargs)

    @classmethod
    def failure(cls, message: str, **kwargs: Any) -> ActionOutcome:
        return cls(status=OutcomeStatus.FAILED, message=message, **kwargs)
