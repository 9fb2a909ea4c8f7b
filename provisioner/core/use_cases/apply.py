"""
Apply use case — reconcile the workstation with its document.

The full vertical slice: load, expand, plan, apply, then append one
entry to the audit ledger.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from provisioner.adapters.shell.command import CommandExecutor
from provisioner.core.engine.reconciler import ReconcileObserver, Reconciler
from provisioner.core.errors import ConfigurationError
from provisioner.core.models.report import RunReport
from provisioner.core.persistence.audit import AuditEntry, AuditWriter
from provisioner.core.use_cases.session import Session, open_session

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    session: Session | None = None
    report: RunReport | None = None
    audit_path: Path | None = None
    error: str | None = None

    @property
    def aborted(self) -> bool:
        return self.report is not None and not self.report.ok

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        result: dict = {}
        if self.session:
            result["document"] = self.session.document.name
            result["config_path"] = str(self.session.config_path)
        if self.audit_path:
            result["audit_path"] = str(self.audit_path)
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def apply_document(
    config_path: Path | None = None,
    dry_run: bool = False,
    executor: CommandExecutor | None = None,
    observer: ReconcileObserver | None = None,
    cancel: threading.Event | None = None,
    audit_path: Path | None = None,
    audit_dry_run: bool = False,
) -> ApplyResult:
    """Plan and apply a document.

    Args:
        config_path: Explicit document path; searched for when None.
        dry_run: Log mutating commands instead of running them.
        executor: Injected executor (tests); overrides ``dry_run``.
        observer: Progress/interaction hooks passed to the reconciler.
        cancel: Event that stops the run before the next resource.
        audit_path: Ledger location (default: XDG state dir).
        audit_dry_run: Also record dry runs in the ledger.

    Returns:
        ApplyResult; ``error`` is set when the document was rejected,
        in which case nothing was probed or changed.
    """
    result = ApplyResult()

    try:
        session = open_session(config_path, dry_run=dry_run, executor=executor)
        result.session = session
        reconciler = Reconciler(session.registry, cancel=cancel, observer=observer)
        report = reconciler.run(session.specs, document=session.document.name)
    except ConfigurationError as e:
        result.error = str(e)
        return result

    result.report = report
    logger.info(
        "Run %s %s: %d applied, %d skipped, %d warned, %d failed",
        report.run_id,
        report.status.value,
        report.applied,
        report.skipped,
        report.warned,
        report.failed,
    )

    if report.dry_run and not audit_dry_run:
        return result

    writer = AuditWriter(audit_path)
    if writer.write(AuditEntry.from_report(report)):
        result.audit_path = writer.path
    return result
