# steps/docker.py
from __future__ import annotations

import grp
import pwd
from dataclasses import dataclass
from typing import Tuple

from .. import system
from ..model import ApplyResult, CheckResult


@dataclass(frozen=True)
class GroupMembership:
    """`user` belongs to `group` (supplementary or primary)."""
    name: str
    user: str | None
    group: str
    needs: Tuple[str, ...] = ()

    def check(self) -> CheckResult:
        if not self.user:
            return CheckResult.INDETERMINATE
        try:
            entry = grp.getgrnam(self.group)
        except KeyError:
            return CheckResult.UNSATISFIED
        if self.user in entry.gr_mem:
            return CheckResult.SATISFIED
        try:
            primary = pwd.getpwnam(self.user).pw_gid
        except KeyError:
            return CheckResult.INDETERMINATE
        return CheckResult.SATISFIED if primary == entry.gr_gid else CheckResult.UNSATISFIED

    def apply(self) -> ApplyResult:
        if not self.user:
            return ApplyResult.failed("cannot determine which user to add; set USER or run through sudo")
        system.run(system.privileged(["usermod", "-aG", self.group, self.user]))
        return ApplyResult.applied()
