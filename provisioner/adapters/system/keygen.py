"""
SSH key adapter — generate a keypair with ``ssh-keygen``.
"""

from __future__ import annotations

from pathlib import Path

from provisioner.adapters.base import Adapter
from provisioner.adapters.shell.command import CommandResult


class KeygenAdapter(Adapter):
    tool = "ssh-keygen"

    @property
    def name(self) -> str:
        return "ssh-keygen"

    def generate(
        self,
        path: str | Path,
        key_type: str = "ed25519",
        bits: int | None = None,
        comment: str = "",
        passphrase: str = "",
    ) -> CommandResult:
        """Write ``path`` and ``path.pub``. Never overwrites: callers probe first."""
        argv = ["ssh-keygen", "-q", "-t", key_type]
        if bits:
            argv += ["-b", str(bits)]
        if comment:
            argv += ["-C", comment]
        argv += ["-N", passphrase, "-f", str(path)]
        # "n" answers the overwrite prompt should a key appear in between
        secrets = [passphrase] if passphrase else []
        return self.executor.run(argv, input_text="n\n", secrets=secrets)
