"""SSH argument construction for remote targets."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SSHTarget:
    """Connection details for a deployment target."""

    name: str = ""
    mode: str = ""
    host: str = ""
    ssh_user: str = ""
    ssh_key: str = ""
    ssh_jump: str = ""


def expand_home(path: str) -> str:
    """Expand a leading ``~/`` to the user's home directory."""
    if path.startswith("~/"):
        try:
            home = str(Path.home())
        except (RuntimeError, KeyError):
            return path
        if not home:
            return path
        return os.path.normpath(os.path.join(home, path[2:]))
    return path


def build_args(target: SSHTarget) -> list[str]:
    """Return ssh options for the target, ending with ``user@host``.

    The caller appends the remote command or further flags.
    """
    args = [
        "-o", "StrictHostKeyChecking=accept-new",
        "-o", "BatchMode=yes",
        "-o", "IdentityAgent=none",
        "-o", "LogLevel=ERROR",
    ]
    if target.ssh_key:
        args += ["-i", expand_home(target.ssh_key)]
    if target.ssh_jump:
        proxy = "ssh -o StrictHostKeyChecking=accept-new -o BatchMode=yes -o LogLevel=ERROR"
        if target.ssh_key:
            proxy += " -i " + expand_home(target.ssh_key)
        proxy += " -W %h:%p " + target.ssh_jump
        args += ["-o", "ProxyCommand=" + proxy]
    args.append(f"{target.ssh_user}@{target.host}")
    return args