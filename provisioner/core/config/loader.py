"""
Desired-state loader — reads workstation.yml into ResourceSpecs.

Two stages:
    load_document()  YAML → DesiredStateDocument (shape only)
    build_specs()    document + variables → ordered list[ResourceSpec]

Variable expansion uses string.Template syntax (``$name`` / ``${name}``;
``$$`` for a literal dollar). Lookup order, last wins: the process
environment, the built-ins ``home`` and ``user``, host facts supplied
by the caller, then the document's own ``vars``.
"""

from __future__ import annotations

import getpass
import logging
import os
from pathlib import Path
from string import Template
from typing import Any

import yaml
from pydantic import ValidationError

from provisioner.core.errors import ConfigurationError
from provisioner.core.models.document import DesiredStateDocument
from provisioner.core.models.resource import FailurePolicy, ResourceKind, ResourceSpec

logger = logging.getLogger(__name__)

DOCUMENT_FILE = "workstation.yml"

# Keys every resource mapping may carry; everything else is payload
_RESERVED = ("kind", "identity", "policy", "description")

# Payload fields holding filesystem paths get ``~`` expanded
_PATH_FIELDS = ("path", "link", "target", "dest", "into", "creates")

DEFAULT_SSH_KEY = "~/.ssh/id_ed25519"


def find_document(start_dir: Path | None = None) -> Path | None:
    """Search for workstation.yml upward from ``start_dir``, then in XDG config.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to the document, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / DOCUMENT_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    candidate = Path(config_home) / "provision" / DOCUMENT_FILE
    if candidate.is_file():
        return candidate
    return None


def load_document(path: Path | None = None) -> DesiredStateDocument:
    """Load and validate the document's shape.

    Raises:
        ConfigurationError: Missing file, bad YAML or schema violation.
    """
    if path is None:
        path = find_document()

    if path is None:
        raise ConfigurationError(
            f"No {DOCUMENT_FILE} found. Create one or specify --config."
        )

    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")

    logger.debug("Loading desired state from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        document = DesiredStateDocument.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid document {path}: {e}") from e

    logger.info("Loaded '%s' with %d resources", document.name, document.resource_count)
    return document


# ── Variables ───────────────────────────────────────────────────


def builtin_variables() -> dict[str, str]:
    return {"home": str(Path.home()), "user": getpass.getuser()}


def referenced_variables(document: DesiredStateDocument) -> set[str]:
    """Names referenced by ``$name`` anywhere in the resources.

    Lets callers skip gathering facts nobody asked for.
    """
    names: set[str] = set()

    def walk(value: Any) -> None:
        if isinstance(value, str):
            for match in Template.pattern.finditer(value):
                name = match.group("named") or match.group("braced")
                if name:
                    names.add(name)
        elif isinstance(value, dict):
            for v in value.values():
                walk(v)
        elif isinstance(value, list):
            for v in value:
                walk(v)

    for _, resource in document.grouped_resources():
        walk(resource)
    for value in document.vars.values():
        walk(value)
    return names


def resolve_variables(
    document: DesiredStateDocument, facts: dict[str, str] | None = None
) -> dict[str, str]:
    """Merge every variable source.

    Document vars are resolved in declaration order, so each may use the
    environment, built-ins, facts and any var declared above it.
    """
    base: dict[str, str] = dict(os.environ)
    base.update(builtin_variables())
    base.update({k: str(v) for k, v in (facts or {}).items()})

    merged = dict(base)
    for name, value in document.vars.items():
        merged[name] = _substitute(value, merged, f"vars.{name}")
    return merged


def _substitute(text: str, variables: dict[str, str], where: str) -> str:
    try:
        return Template(text).substitute(variables)
    except KeyError as e:
        raise ConfigurationError(f"{where}: undefined variable ${{{e.args[0]}}}") from e
    except ValueError as e:
        raise ConfigurationError(f"{where}: {e}") from e


def _expand(value: Any, variables: dict[str, str], where: str) -> Any:
    if isinstance(value, str):
        return _substitute(value, variables, where)
    if isinstance(value, list):
        return [_expand(v, variables, where) for v in value]
    if isinstance(value, dict):
        return {k: _expand(v, variables, f"{where}.{k}") for k, v in value.items()}
    return value


# ── Identity ────────────────────────────────────────────────────


def _joined(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    return str(value)


def _clone_dest(desired: dict[str, Any]) -> str | None:
    if desired.get("dest"):
        return str(desired["dest"])
    if desired.get("into") and desired.get("url"):
        # Same directory name ``git clone URL`` would pick
        name = str(desired["url"]).rstrip("/").rsplit("/", 1)[-1]
        name = name.split(":")[-1].removesuffix(".git")
        dest = str(Path(str(desired["into"])) / name)
        desired["dest"] = dest
        return dest
    return None


def derive_identity(kind: ResourceKind, desired: dict[str, Any]) -> str | None:
    """The natural identity of a resource of ``kind``, or None."""
    K = ResourceKind
    if kind in (K.DIRECTORY, K.REMOVED_DIRECTORY):
        return desired.get("path")
    if kind == K.SYMBOLIC_LINK:
        return desired.get("link")
    if kind in (K.PACKAGE_INSTALLED, K.PACKAGE_REMOVED):
        return _joined(desired.get("packages"))
    if kind == K.APP_PACKAGE_INSTALLED:
        return _joined(desired.get("apps"))
    if kind == K.REPOSITORY_ENABLED:
        return desired.get("id") or desired.get("name")
    if kind == K.DESKTOP_SETTING:
        if desired.get("schema") and desired.get("key"):
            return f"{desired['schema']} {desired['key']}"
        return None
    if kind == K.EXTENSION_ENABLED:
        return desired.get("uuid")
    if kind == K.SSH_KEY_PRESENT:
        return desired.get("path") or os.path.expanduser(DEFAULT_SSH_KEY)
    if kind == K.GIT_REPO_CLONED:
        return _clone_dest(desired)
    if kind == K.PACKAGE_GROUP_INSTALLED:
        return desired.get("group")
    if kind == K.SYSTEM_UPGRADED:
        return desired.get("manager", "dnf")
    if kind in (K.HOSTNAME, K.COMMAND):
        return desired.get("name")
    return None


# ── Specs ───────────────────────────────────────────────────────


def _build_spec(
    raw: dict[str, Any], section: str, variables: dict[str, str], where: str
) -> ResourceSpec:
    kind_name = raw.get("kind")
    try:
        kind = ResourceKind(kind_name)
    except ValueError:
        valid = ", ".join(k.value for k in ResourceKind)
        raise ConfigurationError(f"{where}: unknown kind {kind_name!r} (valid: {valid})") from None

    policy = None
    if raw.get("policy") is not None:
        try:
            policy = FailurePolicy(raw["policy"])
        except ValueError:
            valid = ", ".join(p.value for p in FailurePolicy)
            raise ConfigurationError(
                f"{where}: unknown policy {raw['policy']!r} (valid: {valid})"
            ) from None

    desired = {k: v for k, v in raw.items() if k not in _RESERVED}
    desired = _expand(desired, variables, where)
    for name in _PATH_FIELDS:
        if isinstance(desired.get(name), str):
            desired[name] = os.path.expanduser(desired[name])
    if "package" in desired and "packages" not in desired:
        desired["packages"] = [desired.pop("package")]

    identity = raw.get("identity")
    if identity is not None:
        identity = _substitute(str(identity), variables, f"{where}.identity")
    else:
        identity = derive_identity(kind, desired)
    if not identity:
        raise ConfigurationError(
            f"{where}: cannot derive an identity for kind '{kind.value}'; set 'identity'"
        )

    try:
        return ResourceSpec(
            kind=kind,
            identity=str(identity),
            desired=desired,
            failure_policy=policy,
            description=str(raw.get("description", "")),
            section=section,
        )
    except ValidationError as e:
        raise ConfigurationError(f"{where}: {e}") from e


def build_specs(
    document: DesiredStateDocument, facts: dict[str, str] | None = None
) -> list[ResourceSpec]:
    """Turn the document into ResourceSpecs in application order.

    Raises:
        ConfigurationError: Unknown kind or policy, undefined variable,
            or a resource whose identity cannot be derived.
    """
    variables = resolve_variables(document, facts)
    specs = []
    for position, (section, raw) in enumerate(document.grouped_resources()):
        label = f"{section} #{position}" if section else f"resource #{position}"
        specs.append(_build_spec(raw, section, variables, label))
    return specs


def load_specs(
    path: Path | None = None, facts: dict[str, str] | None = None
) -> tuple[DesiredStateDocument, list[ResourceSpec]]:
    """Convenience: load_document() then build_specs()."""
    document = load_document(path)
    return document, build_specs(document, facts)
