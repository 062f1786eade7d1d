# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Protocol, Sequence


class CheckResult(str, Enum):
    """Answer of a Step's read-only check."""
    SATISFIED = "satisfied"
    UNSATISFIED = "unsatisfied"
    INDETERMINATE = "indeterminate"   # check could not run; apply must be attempted


@dataclass(frozen=True)
class ApplyResult:
    """Answer of a Step's mutation: applied, or failed with a reason."""
    ok: bool
    reason: str | None = None

    @classmethod
    def applied(cls) -> ApplyResult:
        return cls(ok=True)

    @classmethod
    def failed(cls, reason: str) -> ApplyResult:
        return cls(ok=False, reason=reason)


class Step(Protocol):
    """
    Smallest idempotent unit of work.

    Any object with a `name`, a `needs` sequence and the two operations below
    is a Step; concrete kinds do not share a base class.

    Contract:
      - check() never mutates anything
      - apply() is safe to call repeatedly
      - after a successful apply(), check() reports SATISFIED
    """
    name: str
    needs: Sequence[str]

    def check(self) -> CheckResult: ...

    def apply(self) -> ApplyResult: ...


StepFactory = Callable[[], Step]


@dataclass(frozen=True)
class Feature:
    """
    A user-selectable bundle of Steps.

    `steps` holds factories, not Step instances: Steps are built fresh for
    every invocation and never carry state between runs.
    `needs` names other Features whose Steps must all run first.
    """
    name: str
    steps: tuple[StepFactory, ...]
    needs: tuple[str, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class Profile:
    """A named set of Features. Carries no Steps of its own."""
    name: str
    features: tuple[str, ...]
    description: str = ""


class Outcome(str, Enum):
    SKIPPED = "skipped"
    APPLIED = "applied"
    FAILED = "failed"
    BLOCKED_BY_DEPENDENCY = "blocked-by-dependency"
    CONTRACT_VIOLATION = "contract-violation"
    NOT_RUN = "not-run"

    @property
    def reached(self) -> bool:
        """True if the Step's desired state holds after this outcome."""
        return self in (Outcome.SKIPPED, Outcome.APPLIED)


class RunStatus(str, Enum):
    PLANNED = "planned"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially-failed"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class PlannedStep:
    """A Step placed in the execution order, with the Feature that first asked for it."""
    step: Step
    feature: str
    needs: tuple[str, ...]

    @property
    def name(self) -> str:
        return self.step.name


@dataclass
class Plan:
    """Deterministic execution order for one invocation."""
    features: list[str]
    steps: list[PlannedStep]
    edges: list[tuple[str, str]] = field(default_factory=list)

    @property
    def step_names(self) -> list[str]:
        return [p.name for p in self.steps]


@dataclass(frozen=True)
class StepResult:
    name: str
    feature: str
    outcome: Outcome
    reason: Optional[str] = None
    duration: float = 0.0


@dataclass
class RunReport:
    """
    Structured result of one convergence run.

    `results` is ordered like the plan. `ok` is the single success signal the
    caller turns into a process exit status.
    """
    results: list[StepResult] = field(default_factory=list)
    status: RunStatus = RunStatus.PLANNED

    @property
    def ok(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def exit_code(self) -> int:
        if self.status == RunStatus.COMPLETED:
            return 0
        if self.status == RunStatus.INTERRUPTED:
            return 130
        return 1

    def outcome_of(self, name: str) -> Outcome:
        for r in self.results:
            if r.name == name:
                return r.outcome
        raise KeyError(name)

    def outcomes(self) -> dict[str, Outcome]:
        return {r.name: r.outcome for r in self.results}

    def count(self, outcome: Outcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)
