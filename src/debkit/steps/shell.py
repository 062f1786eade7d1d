# steps/shell.py
from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Tuple

from .. import system
from ..model import ApplyResult, CheckResult


@dataclass(frozen=True)
class ShellStep:
    """
    Step driven by two shell snippets.

    `check` exit 0 means satisfied, any other exit means unsatisfied; a check
    that cannot be launched is indeterminate. `apply` must exit 0.
    """
    name: str
    check_cmd: str
    apply_cmd: str
    needs: Tuple[str, ...] = ()

    def check(self) -> CheckResult:
        try:
            proc = subprocess.run(
                ["sh", "-c", self.check_cmd],
                capture_output=True,
                text=True,
            )
        except OSError:
            return CheckResult.INDETERMINATE
        return CheckResult.SATISFIED if proc.returncode == 0 else CheckResult.UNSATISFIED

    def apply(self) -> ApplyResult:
        try:
            system.run_shell(self.apply_cmd)
        except system.CommandFailed as e:
            return ApplyResult.failed(str(e))
        return ApplyResult.applied()
