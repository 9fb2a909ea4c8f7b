"""
Check use case — validate a desired-state document without probing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from provisioner.adapters.shell.command import CommandExecutor
from provisioner.core.engine.catalog import default_catalog
from provisioner.core.engine.reconciler import validate_specs
from provisioner.core.errors import ConfigurationError
from provisioner.core.use_cases.session import Session, open_session


@dataclass
class CheckResult:
    """Result of document validation."""

    valid: bool = False
    session: Session | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        session = self.session
        return {
            "valid": self.valid,
            "config_path": str(session.config_path) if session else None,
            "document": session.document.name if session else None,
            "resource_count": len(session.specs) if session else 0,
            "errors": self.errors,
            "warnings": self.warnings,
        }


def check_document(
    config_path: Path | None = None, executor: CommandExecutor | None = None
) -> CheckResult:
    """Load, expand and validate a document; flag missing backends.

    Nothing is probed or changed. Backends that are not installed are
    reported as warnings, since their resources would plan as unknown.
    """
    result = CheckResult()
    catalog = default_catalog()

    try:
        session = open_session(config_path, dry_run=True, executor=executor)
        result.session = session
        validate_specs(session.specs, catalog)
    except ConfigurationError as e:
        result.errors.append(str(e))
        return result

    if not session.specs:
        result.warnings.append("No resources declared. The document has nothing to apply.")

    needed: dict[str, int] = {}
    for spec in session.specs:
        adapter = catalog.get(spec.kind).adapter
        needed[adapter] = needed.get(adapter, 0) + 1
    for name, count in sorted(needed.items()):
        adapter = session.registry.get(name)
        if adapter is not None and not adapter.is_available():
            result.warnings.append(
                f"{name} is not available; {count} resource(s) will probe as unknown"
            )

    result.valid = True
    return result
