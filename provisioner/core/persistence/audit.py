"""
Audit ledger — one NDJSON line per apply run.

A record for humans (``provision history``). The engine never reads it
back to decide anything; idempotence always comes from probing.

Location, first match wins:
    explicit path  >  $PROVISION_AUDIT_FILE  >  $XDG_STATE_HOME/provision/audit.ndjson
"""

from __future__ import annotations

import json
import logging
import os
from collections import deque
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from provisioner.core.models.outcome import OutcomeStatus
from provisioner.core.models.report import RunReport

logger = logging.getLogger(__name__)

ENV_AUDIT_FILE = "PROVISION_AUDIT_FILE"
DEFAULT_AUDIT_FILE = "audit.ndjson"


def default_audit_path() -> Path:
    override = os.environ.get(ENV_AUDIT_FILE)
    if override:
        return Path(override)
    state_home = os.environ.get("XDG_STATE_HOME") or str(Path.home() / ".local" / "state")
    return Path(state_home) / "provision" / DEFAULT_AUDIT_FILE


class AuditEntry(BaseModel):
    """Summary of one run."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    document: str = ""
    status: str = ""               # completed, completed_with_warnings, aborted
    dry_run: bool = False
    counts: dict[str, int] = Field(default_factory=dict)
    failed: list[str] = Field(default_factory=list)
    warned: list[str] = Field(default_factory=list)
    not_attempted: list[str] = Field(default_factory=list)
    abort_reason: str | None = None

    @classmethod
    def from_report(cls, report: RunReport) -> AuditEntry:
        return cls(
            run_id=report.run_id,
            document=report.document,
            status=report.status.value,
            dry_run=report.dry_run,
            counts=report.counts,
            failed=report.labels_with(OutcomeStatus.FAILED),
            warned=report.labels_with(OutcomeStatus.WARNED),
            not_attempted=list(report.not_attempted),
            abort_reason=report.abort_reason,
        )


class AuditWriter:
    """Append-only ledger writer.

    Each write() appends one JSON line; the file and its parent
    directory are created on first use.
    """

    def __init__(self, path: Path | None = None):
        self._path = path if path is not None else default_audit_path()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> bool:
        """Append ``entry``. Returns False (and logs) when the ledger is unwritable."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s (%s)", entry.run_id, entry.status)
        except OSError as e:
            logger.error("Failed to write audit entry to %s: %s", self._path, e)
            return False
        return True

    def entries(self) -> Iterator[AuditEntry]:
        """Yield entries oldest first, skipping corrupt lines with a warning."""
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error("Failed to read audit ledger %s: %s", self._path, e)
            return

        for number, raw in enumerate(lines, start=1):
            if not raw.strip():
                continue
            try:
                yield AuditEntry.model_validate_json(raw)
            except ValidationError as e:
                logger.warning("%s:%d: skipping corrupt audit entry (%s)", self._path, number, e)

    def read_all(self) -> list[AuditEntry]:
        return list(self.entries())

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """The last ``n`` runs, oldest first."""
        if n <= 0:
            return []
        return list(deque(self.entries(), maxlen=n))

    def find(self, run_id: str) -> AuditEntry | None:
        """Entry for a run ID, or a unique prefix of one."""
        matches = [e for e in self.entries() if e.run_id.startswith(run_id)]
        exact = [e for e in matches if e.run_id == run_id]
        if exact:
            return exact[-1]
        return matches[0] if len(matches) == 1 else None

    def entry_count(self) -> int:
        return sum(1 for _ in self.entries())
