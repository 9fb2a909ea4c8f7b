"""
Plan use case — probe every resource and report what apply would do.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from provisioner.adapters.shell.command import CommandExecutor
from provisioner.core.engine.reconciler import Reconciler
from provisioner.core.errors import ConfigurationError
from provisioner.core.models.plan import RunPlan
from provisioner.core.use_cases.session import Session, open_session


@dataclass
class PlanResult:
    session: Session | None = None
    plan: RunPlan | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        result: dict = {}
        if self.session:
            result["document"] = self.session.document.name
            result["config_path"] = str(self.session.config_path)
        if self.plan:
            result["plan"] = self.plan.to_dict()
        return result


def plan_document(
    config_path: Path | None = None, executor: CommandExecutor | None = None
) -> PlanResult:
    """Probe the document's resources without changing anything.

    The executor is built in dry-run mode, so even a probe that slipped
    through as a mutating command would only be logged.
    """
    result = PlanResult()
    try:
        session = open_session(config_path, dry_run=True, executor=executor)
        result.session = session
        result.plan = Reconciler(session.registry).plan(session.specs)
    except ConfigurationError as e:
        result.error = str(e)
    return result
