"""
Session — everything a command needs before it can plan.

Loads the document, builds the executor and adapter registry from the
document's settings, gathers host facts the document refers to and
expands it into ResourceSpecs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from provisioner.adapters.registry import AdapterRegistry, default_registry
from provisioner.adapters.shell.command import CommandExecutor
from provisioner.adapters.system.host import HostAdapter
from provisioner.core.config.loader import (
    build_specs,
    find_document,
    load_document,
    referenced_variables,
)
from provisioner.core.errors import ConfigurationError
from provisioner.core.models.document import DesiredStateDocument, EngineSettings
from provisioner.core.models.resource import ResourceSpec

logger = logging.getLogger(__name__)

# Host facts that are only looked up when the document uses them
FACT_NAMES = ("fedora_version",)


@dataclass
class Session:
    document: DesiredStateDocument
    config_path: Path
    registry: AdapterRegistry
    specs: list[ResourceSpec] = field(default_factory=list)
    facts: dict[str, str] = field(default_factory=dict)


def build_executor(settings: EngineSettings, dry_run: bool = False) -> CommandExecutor:
    return CommandExecutor(
        dry_run=dry_run,
        privilege_command=settings.privilege,
        timeout=settings.timeout,
    )


def gather_facts(document: DesiredStateDocument, registry: AdapterRegistry) -> dict[str, str]:
    """Look up the host facts the document refers to and does not define."""
    wanted = (referenced_variables(document) & set(FACT_NAMES)) - set(document.vars)
    facts: dict[str, str] = {}
    if "fedora_version" in wanted:
        version = registry.require("hostnamectl", HostAdapter).fedora_version()
        if version:
            facts["fedora_version"] = version
        else:
            logger.warning("Could not determine the Fedora release")
    return facts


def open_session(
    config_path: Path | None = None,
    dry_run: bool = False,
    executor: CommandExecutor | None = None,
) -> Session:
    """Load and expand a document.

    Args:
        config_path: Explicit document path; searched for when None.
        dry_run: Build an executor that skips mutating commands.
        executor: Use this executor instead (tests pass a MockExecutor).

    Raises:
        ConfigurationError: No document, or an invalid one.
    """
    if config_path is None:
        config_path = find_document()
    if config_path is None:
        raise ConfigurationError("No workstation.yml found. Create one or specify --config.")

    document = load_document(config_path)
    if executor is None:
        executor = build_executor(document.settings, dry_run=dry_run)

    registry = default_registry(
        executor,
        repos_dir=document.settings.repos_dir,
        flatpak_installation=document.settings.flatpak_installation,
    )
    facts = gather_facts(document, registry)
    specs = build_specs(document, facts)
    return Session(
        document=document,
        config_path=config_path,
        registry=registry,
        specs=specs,
        facts=facts,
    )
