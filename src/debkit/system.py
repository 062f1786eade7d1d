# system.py
# Small, focused wrapper around the system tools debkit drives.
# Steps never call subprocess directly; they go through these helpers so
# tests can monkeypatch one place.

from __future__ import annotations

import os
import pwd
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional


@dataclass(eq=False)
class CommandFailed(Exception):
    """A system command exited non-zero."""
    cmd: List[str]
    exit_code: int
    stderr: str = ""

    def __str__(self) -> str:
        msg = f"command `{' '.join(self.cmd)}` failed (exit={self.exit_code})"
        tail = self.stderr.strip()
        if tail:
            msg += f": {tail.splitlines()[-1]}"
        return msg


def run(
    cmd: List[str],
    *,
    env: Optional[Dict[str, str]] = None,
    capture: bool = False,
) -> str:
    """
    Execute a command, raising CommandFailed on a non-zero exit.

    With capture=True the command's stdout is returned stripped; otherwise
    output streams straight to the terminal (apt progress, rustup, ...).
    """
    full_env = os.environ.copy()
    full_env.update(env or {})

    proc = subprocess.run(
        cmd,
        env=full_env,
        text=True,
        capture_output=capture,
    )
    if proc.returncode != 0:
        raise CommandFailed(cmd=list(cmd), exit_code=proc.returncode, stderr=proc.stderr or "")
    return (proc.stdout or "").strip() if capture else ""


def run_shell(script: str) -> None:
    """Run a shell pipeline through `sh -c`."""
    run(["sh", "-c", script])


def command_available(program: str, extra_dirs: Optional[List[Path]] = None) -> Optional[Path]:
    """Resolve a program on PATH, then in extra_dirs. None if absent."""
    found = shutil.which(program)
    if found:
        return Path(found)
    for d in extra_dirs or []:
        candidate = d / program
        if candidate.exists() and os.access(candidate, os.X_OK):
            return candidate
    return None


def is_root() -> bool:
    return os.geteuid() == 0


# ---------------------------------------------------------------------
# apt / dpkg
# ---------------------------------------------------------------------

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def privileged(cmd: List[str], *, keep_env: Optional[List[str]] = None) -> List[str]:
    """
    Prefix a command with sudo unless we already are root.

    Raises PermissionError when neither root nor sudo is available.
    """
    if is_root():
        return list(cmd)
    if command_available("sudo"):
        prefix = ["sudo"]
        if keep_env:
            prefix.append(f"--preserve-env={','.join(keep_env)}")
        return [*prefix, *cmd]
    raise PermissionError(f"`{cmd[0]}` requires root privileges; run as root or install sudo")


def apt_get(args: List[str]) -> None:
    """Run apt-get non-interactively."""
    run(privileged(["apt-get", *args], keep_env=list(APT_ENV)), env=APT_ENV)


def dpkg_version(package: str) -> Optional[str]:
    """Installed version of a package, or None when it is not installed."""
    try:
        out = run(["dpkg-query", "-W", "-f=${Status}\t${Version}", package], capture=True)
    except CommandFailed:
        return None
    status, _, version = out.partition("\t")
    if not status.endswith(" installed") or not version:
        return None
    return version


# ---------------------------------------------------------------------
# Target user
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class UserContext:
    """
    The account whose home directory debkit configures.

    When running as root through sudo this is SUDO_USER, so files land in the
    invoking user's home and get chowned back to them.
    """
    name: Optional[str]
    home: Path
    uid: Optional[int] = None
    gid: Optional[int] = None


def target_user() -> UserContext:
    if is_root():
        sudo_user = (os.environ.get("SUDO_USER") or "").strip()
        if sudo_user:
            try:
                entry = pwd.getpwnam(sudo_user)
            except KeyError:
                return UserContext(name=sudo_user, home=Path("/home") / sudo_user)
            return UserContext(
                name=sudo_user,
                home=Path(entry.pw_dir),
                uid=entry.pw_uid,
                gid=entry.pw_gid,
            )

    home = os.environ.get("HOME")
    if not home:
        raise RuntimeError("HOME environment variable is not set")
    name = os.environ.get("USER") or os.environ.get("LOGNAME")
    return UserContext(name=name, home=Path(home))


def ensure_owned(path: Path, user: UserContext, mode: int) -> None:
    """chmod, and chown to the target user when we know their ids."""
    os.chmod(path, mode)
    if user.uid is not None and user.gid is not None:
        os.chown(path, user.uid, user.gid)


def as_user(cmd: List[str], user: UserContext) -> List[str]:
    """
    Run `cmd` as the target user when we are root acting on their behalf.

    Tools that install into a home directory (rustup) must not run as root,
    or they land in root's home instead of the user's.
    """
    if is_root() and user.name and user.name != "root" and user.uid != 0:
        return ["runuser", "-u", user.name, "--", *cmd]
    return list(cmd)
