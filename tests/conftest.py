from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from debkit.model import ApplyResult, CheckResult
from debkit.ui.console import Console, set_console


@dataclass
class Machine:
    # In-memory stand-in for the real system: which steps' states hold.
    satisfied: set = field(default_factory=set)
    applies: List[str] = field(default_factory=list)
    checks: List[str] = field(default_factory=list)
    fail: Dict[str, str] = field(default_factory=dict)
    lie: set = field(default_factory=set)            # apply reports success without effect
    indeterminate: set = field(default_factory=set)  # check cannot run
    explode: set = field(default_factory=set)        # check raises

    def factory(self, name: str, needs: Tuple[str, ...] = ()) -> Callable[[], "FakeStep"]:
        return lambda: FakeStep(name=name, needs=tuple(needs), machine=self)


@dataclass
class FakeStep:
    name: str
    machine: Machine
    needs: Tuple[str, ...] = ()

    def check(self) -> CheckResult:
        self.machine.checks.append(self.name)
        if self.name in self.machine.explode:
            raise PermissionError("check not allowed")
        if self.name in self.machine.indeterminate:
            return CheckResult.INDETERMINATE
        if self.name in self.machine.satisfied:
            return CheckResult.SATISFIED
        return CheckResult.UNSATISFIED

    def apply(self) -> ApplyResult:
        self.machine.applies.append(self.name)
        reason: Optional[str] = self.machine.fail.get(self.name)
        if reason:
            return ApplyResult.failed(reason)
        if self.name not in self.machine.lie:
            self.machine.satisfied.add(self.name)
        return ApplyResult.applied()


@pytest.fixture
def machine() -> Machine:
    return Machine()


@pytest.fixture(autouse=True)
def quiet_console():
    set_console(Console(debug=False))
    yield
