# steps/apt.py
from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from .. import system
from ..model import ApplyResult, CheckResult

# Touched by apt itself after every successful `apt-get update` we run.
UPDATE_STAMP = Path("/var/lib/apt/periodic/update-success-stamp")
DEFAULT_MAX_AGE_HOURS = 24


@dataclass(frozen=True)
class AptUpdate:
    """Package index is fresh: refreshed within the last `max_age_hours`."""
    name: str = "apt-update"
    needs: Tuple[str, ...] = ()
    max_age_hours: int = DEFAULT_MAX_AGE_HOURS
    stamp: Path = UPDATE_STAMP

    def check(self) -> CheckResult:
        try:
            mtime = self.stamp.stat().st_mtime
        except FileNotFoundError:
            return CheckResult.UNSATISFIED
        except PermissionError:
            return CheckResult.INDETERMINATE

        age = time.time() - mtime
        return CheckResult.SATISFIED if age < self.max_age_hours * 3600 else CheckResult.UNSATISFIED

    def apply(self) -> ApplyResult:
        system.apt_get([
            "-o", f"APT::Update::Post-Invoke-Success::=mkdir -p {self.stamp.parent} && touch {self.stamp}",
            "update",
        ])
        return ApplyResult.applied()


@dataclass(frozen=True)
class AptInstall:
    """Every package in `packages` is installed."""
    name: str
    packages: Tuple[str, ...]
    needs: Tuple[str, ...] = ("apt-update",)

    def missing(self) -> List[str]:
        return [p for p in self.packages if system.dpkg_version(p) is None]

    def check(self) -> CheckResult:
        return CheckResult.UNSATISFIED if self.missing() else CheckResult.SATISFIED

    def apply(self) -> ApplyResult:
        pending = self.missing()
        if pending:
            system.apt_get(["install", "-y", *pending])
        else:
            # only reached when forced
            system.apt_get(["install", "-y", "--reinstall", *self.packages])
        return ApplyResult.applied()


def apt_install(name: str, *packages: str, needs: Tuple[str, ...] = ("apt-update",)) -> AptInstall:
    """Create an apt install step."""
    if not packages:
        raise ValueError(f"apt_install({name!r}) needs at least one package")
    return AptInstall(name=name, packages=tuple(packages), needs=needs)
