"""
GSettings adapter — GNOME desktop settings store.

Values cross the CLI as GVariant text: ``gsettings get`` prints
``'prefer-dark'`` or ``uint32 300`` while a config file usually says
``prefer-dark`` or ``300``. Comparisons go through normalize_value so a
quoting difference is never reported as drift.
"""

from __future__ import annotations

import logging
import re

from provisioner.adapters.base import Adapter
from provisioner.adapters.shell.command import CommandResult

logger = logging.getLogger(__name__)

_TYPE_PREFIX = re.compile(r"^(?:u?int(?:16|32|64)|byte|double|@[a-z{}()]+)\s+")


def normalize_value(value: object) -> str:
    """Canonical text form of a GVariant value for equality checks."""
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value).strip()
    text = _TYPE_PREFIX.sub("", text)
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
        text = text[1:-1]
    if text.startswith("[") and text.endswith("]"):
        # Arrays: compare element text without quoting or spacing noise
        items = [normalize_value(i) for i in text[1:-1].split(",") if i.strip()]
        return "[" + ",".join(items) + "]"
    return text


class GSettingsAdapter(Adapter):
    """Read and write GNOME settings."""

    tool = "gsettings"

    @property
    def name(self) -> str:
        return "gsettings"

    # ── Queries ─────────────────────────────────────────────────

    def is_writable(self, schema: str, key: str) -> bool:
        """False when the schema or key does not exist on this system."""
        result = self._query(["gsettings", "writable", schema, key])
        return result.ok and result.stdout.strip() == "true"

    def get(self, schema: str, key: str) -> str | None:
        result = self._query(["gsettings", "get", schema, key])
        if not result.ok:
            return None
        return result.stdout.strip()

    def matches(self, schema: str, key: str, value: object) -> bool:
        current = self.get(schema, key)
        return current is not None and normalize_value(current) == normalize_value(value)

    # ── Mutations ───────────────────────────────────────────────

    def set(self, schema: str, key: str, value: object) -> CommandResult:
        if isinstance(value, bool):
            value = "true" if value else "false"
        return self.executor.run(["gsettings", "set", schema, key, str(value)])
