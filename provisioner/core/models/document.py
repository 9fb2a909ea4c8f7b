"""
Desired-state document — the YAML file a user writes.

The document is a thin, user-friendly shape: resources are free-form
mappings with a ``kind`` plus kind-specific fields. The config loader
turns each mapping into a ResourceSpec.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


class EngineSettings(BaseModel):
    """Knobs for how commands are run on this machine."""

    privilege: list[str] = Field(default_factory=lambda: ["sudo"])
    timeout: int = Field(default=1800, gt=0)
    repos_dir: str = "/etc/yum.repos.d"
    flatpak_installation: Literal["system", "user"] = "system"


class Section(BaseModel):
    """A named group of resources, applied in order."""

    name: str
    description: str = ""
    resources: list[dict[str, Any]] = Field(default_factory=list)


class DesiredStateDocument(BaseModel):
    """Root model of a desired-state file.

    Either ``sections`` (named groups) or a flat ``resources`` list, or
    both: sections come first, then the flat list.
    """

    version: int = 1
    name: str = "workstation"
    description: str = ""
    settings: EngineSettings = Field(default_factory=EngineSettings)
    vars: dict[str, str] = Field(default_factory=dict)
    sections: list[Section] = Field(default_factory=list)
    resources: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("version")
    @classmethod
    def _supported_version(cls, value: int) -> int:
        if value != 1:
            raise ValueError(f"unsupported document version {value} (expected 1)")
        return value

    @field_validator("vars", mode="before")
    @classmethod
    def _stringify_vars(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items()}
        return value

    def grouped_resources(self) -> list[tuple[str, dict[str, Any]]]:
        """(section name, raw resource) pairs in application order."""
        pairs = [(s.name, r) for s in self.sections for r in s.resources]
        pairs += [("", r) for r in self.resources]
        return pairs

    @property
    def resource_count(self) -> int:
        return len(self.grouped_resources())
