"""
RunPlan — probe results for every spec, computed before any mutation.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from provisioner.core.models.outcome import ProbeResult
from provisioner.core.models.resource import ResourceSpec


@dataclass(frozen=True)
class PlanEntry:
    """A spec paired with what its probe reported."""

    spec: ResourceSpec
    probe: ProbeResult
    position: int = 0

    @property
    def needs_apply(self) -> bool:
        return not self.probe.satisfied


@dataclass(frozen=True)
class RunPlan:
    """Ordered, immutable sequence of plan entries."""

    run_id: str = ""
    entries: tuple[PlanEntry, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def pending(self) -> list[PlanEntry]:
        """Entries whose probe did not report satisfied."""
        return [e for e in self.entries if e.needs_apply]

    @property
    def unknown(self) -> list[PlanEntry]:
        return [e for e in self.entries if e.probe.unknown]

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "total": len(self.entries),
            "pending": len(self.pending),
            "entries": [
                {
                    "position": e.position,
                    "kind": e.spec.kind.value,
                    "identity": e.spec.identity,
                    "section": e.spec.section,
                    "probe": e.probe.status,
                    "reason": e.probe.reason,
                }
                for e in self.entries
            ],
        }
