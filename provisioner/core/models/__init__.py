"""
Domain models — the engine's input, intermediate and output types.

    from provisioner.core.models import ResourceSpec, ProbeResult, RunReport
"""

from provisioner.core.models.document import DesiredStateDocument, EngineSettings, Section
from provisioner.core.models.outcome import ActionOutcome, OutcomeStatus, ProbeResult
from provisioner.core.models.plan import PlanEntry, RunPlan
from provisioner.core.models.report import ReportRecord, RunReport, RunStatus
from provisioner.core.models.resource import FailurePolicy, ResourceKind, ResourceSpec

__all__ = [
    # document.py
    "DesiredStateDocument",
    "EngineSettings",
    "Section",
    # outcome.py
    "ActionOutcome",
    "OutcomeStatus",
    "ProbeResult",
    # plan.py
    "PlanEntry",
    "RunPlan",
    # report.py
    "ReportRecord",
    "RunReport",
    "RunStatus",
    # resource.py
    "FailurePolicy",
    "ResourceKind",
    "ResourceSpec",
]
