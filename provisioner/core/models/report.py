"""
RunReport — the append-only ledger of one reconciliation run.

The report is the single source of truth for what happened. It is owned
by the run that produced it; persisting it is the caller's business.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from provisioner.core.errors import RunAborted
from provisioner.core.models.outcome import ActionOutcome, OutcomeStatus
from provisioner.core.models.resource import ResourceSpec


class RunStatus(str, Enum):
    COMPLETED = "completed"
    COMPLETED_WITH_WARNINGS = "completed_with_warnings"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ReportRecord:
    spec: ResourceSpec
    outcome: ActionOutcome


@dataclass
class RunReport:
    """Outcomes of one run, in the order they were recorded."""

    run_id: str = ""
    document: str = ""
    dry_run: bool = False
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    ended_at: str = ""
    abort_reason: str | None = None
    not_attempted: list[str] = field(default_factory=list)
    _records: list[ReportRecord] = field(default_factory=list, repr=False)

    # ── Recording ────────────────────────────────────────────────

    def record(self, spec: ResourceSpec, outcome: ActionOutcome) -> None:
        """Append an outcome. Records are never modified or removed."""
        if self.ended_at:
            raise RuntimeError(f"Report {self.run_id} is already finished")
        self._records.append(ReportRecord(spec=spec, outcome=outcome))

    def abort(self, reason: str, remaining: list[ResourceSpec] | None = None) -> None:
        """Mark the run as aborted, noting the specs that never ran."""
        self.abort_reason = reason
        self.not_attempted = [s.label for s in remaining or []]

    def finish(self) -> None:
        self.ended_at = datetime.now(UTC).isoformat()

    # ── Queries ──────────────────────────────────────────────────

    @property
    def records(self) -> tuple[ReportRecord, ...]:
        return tuple(self._records)

    def outcome_for(self, label: str) -> ActionOutcome | None:
        """Outcome recorded for a spec label (``kind:identity``)."""
        for rec in self._records:
            if rec.spec.label == label:
                return rec.outcome
        return None

    @property
    def counts(self) -> dict[str, int]:
        """Number of records per outcome status (every status present)."""
        tally = Counter(rec.outcome.status for rec in self._records)
        return {status.value: tally.get(status, 0) for status in OutcomeStatus}

    @property
    def total(self) -> int:
        return len(self._records)

    @property
    def applied(self) -> int:
        return self.counts[OutcomeStatus.APPLIED.value]

    @property
    def warned(self) -> int:
        return self.counts[OutcomeStatus.WARNED.value]

    @property
    def failed(self) -> int:
        return self.counts[OutcomeStatus.FAILED.value]

    @property
    def skipped(self) -> int:
        return (
            self.counts[OutcomeStatus.SKIPPED_ALREADY_SATISFIED.value]
            + self.counts[OutcomeStatus.SKIPPED_UNSUPPORTED.value]
        )

    @property
    def status(self) -> RunStatus:
        if self.abort_reason is not None:
            return RunStatus.ABORTED
        if self.warned:
            return RunStatus.COMPLETED_WITH_WARNINGS
        return RunStatus.COMPLETED

    @property
    def ok(self) -> bool:
        return self.status != RunStatus.ABORTED

    def labels_with(self, status: OutcomeStatus) -> list[str]:
        return [r.spec.label for r in self._records if r.outcome.status == status]

    def raise_for_status(self) -> None:
        """Raise RunAborted (carrying this report) if the run aborted."""
        if self.status == RunStatus.ABORTED:
            raise RunAborted(self)

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "document": self.document,
            "dry_run": self.dry_run,
            "status": self.status.value,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "abort_reason": self.abort_reason,
            "total": self.total,
            "counts": self.counts,
            "not_attempted": list(self.not_attempted),
            "records": [
                {
                    "kind": r.spec.kind.value,
                    "identity": r.spec.identity,
                    "section": r.spec.section,
                    **r.outcome.model_dump(mode="json"),
                }
                for r in self._records
            ],
        }
