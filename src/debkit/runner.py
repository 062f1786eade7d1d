# runner.py
from __future__ import annotations

import signal
import time
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from .dag import plan_features
from .model import (
    ApplyResult,
    CheckResult,
    Outcome,
    Plan,
    PlannedStep,
    RunReport,
    RunStatus,
    StepResult,
)
from .registry import FeatureRegistry, ProfileRegistry
from .ui.console import get_console


# ----------------------------------------------------------------------
# Step execution primitives
# ----------------------------------------------------------------------

def _safe_check(planned: PlannedStep) -> CheckResult:
    """Run check(); a check that blows up is treated as INDETERMINATE."""
    console = get_console()
    try:
        result = planned.step.check()
    except Exception as e:
        console.print_debug(f"[{planned.name}] check raised {type(e).__name__}: {e}")
        return CheckResult.INDETERMINATE

    if not isinstance(result, CheckResult):
        console.print_debug(f"[{planned.name}] check returned {result!r}, treating as indeterminate")
        return CheckResult.INDETERMINATE
    return result


def _safe_apply(planned: PlannedStep) -> ApplyResult:
    """Run apply(); an exception becomes a failed result carrying its message."""
    try:
        result = planned.step.apply()
    except Exception as e:
        return ApplyResult.failed(f"{type(e).__name__}: {e}")

    if not isinstance(result, ApplyResult):
        return ApplyResult.failed(f"apply returned {result!r} instead of an ApplyResult")
    return result


def _blocking_dependency(planned: PlannedStep, reached: Dict[str, bool]) -> Optional[str]:
    # Predecessors always precede us in the plan, so they are already in `reached`.
    for dep in planned.needs:
        if not reached.get(dep, False):
            return dep
    return None


# ----------------------------------------------------------------------
# Interrupt handling
# ----------------------------------------------------------------------

class StopFlag:
    """Set by SIGINT/SIGTERM; polled by the engine between Steps."""

    def __init__(self) -> None:
        self.requested = False
        self.signum: int | None = None

    def _signal_handler(self, signum, frame):
        get_console().print_info(f"\nReceived signal {signum}, stopping after the current step...")
        self.requested = True
        self.signum = signum


@contextmanager
def graceful_stop() -> Iterator[StopFlag]:
    """
    Defer SIGINT/SIGTERM until the running Step finishes.

    This only covers debkit's own process. Ctrl+C at a terminal signals the
    whole foreground process group, so a child the Step is waiting on
    (apt-get, rustup) may still die and the Step is then recorded FAILED.
    Children stay in our group because sudo and apt need the terminal.

    Handlers are restored on exit. Outside the main thread signal handlers
    cannot be installed; the flag then simply never fires.
    """
    flag = StopFlag()
    previous = {}
    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous[sig] = signal.signal(sig, flag._signal_handler)
    except ValueError:
        pass
    try:
        yield flag
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


# ----------------------------------------------------------------------
# Engine
# ----------------------------------------------------------------------

class ConvergenceEngine:
    """
    Drives the machine toward the requested Features.

    Execution is strictly sequential. A failed Step blocks only its
    transitive dependents; independent branches keep running.
    """

    def __init__(self, features: FeatureRegistry, profiles: ProfileRegistry):
        self.features = features
        self.profiles = profiles

    def resolve(
        self,
        features: Sequence[str] = (),
        profiles: Sequence[str] = (),
    ) -> List[str]:
        """Requested Feature names: direct request first, then Profile expansion."""
        names: List[str] = []
        for name in features:
            self.features.get(name)
            if name not in names:
                names.append(name)
        for profile in profiles:
            for name in self.profiles.expand(profile):
                if name not in names:
                    names.append(name)
        return names

    def plan(
        self,
        features: Sequence[str] = (),
        profiles: Sequence[str] = (),
    ) -> Plan:
        return plan_features(self.features, self.resolve(features, profiles))

    def status(self, plan: Plan) -> Dict[str, CheckResult]:
        """Check every planned Step without applying anything."""
        return {p.name: _safe_check(p) for p in plan.steps}

    def run(
        self,
        plan: Plan,
        *,
        force: Iterable[str] = (),
        verify: bool = True,
        stop: StopFlag | None = None,
    ) -> RunReport:
        """
        Execute a plan.

        force:  Step names whose check is bypassed (apply always attempted).
        verify: re-check after a successful apply to catch contract violations.
        stop:   polled between Steps; once set, remaining Steps are NOT_RUN.
        """
        console = get_console()
        forced = set(force)
        report = RunReport(status=RunStatus.RUNNING)
        reached: Dict[str, bool] = {}

        for idx, planned in enumerate(plan.steps):
            if stop is not None and stop.requested:
                for rest in plan.steps[idx:]:
                    report.results.append(
                        StepResult(name=rest.name, feature=rest.feature, outcome=Outcome.NOT_RUN, reason="interrupted")
                    )
                report.status = RunStatus.INTERRUPTED
                console.print_results(report)
                return report

            result = self._run_step(planned, reached, forced=planned.name in forced, verify=verify)
            reached[planned.name] = result.outcome.reached
            report.results.append(result)
            console.print_step_result(result)

        failed = any(not r.outcome.reached for r in report.results)
        report.status = RunStatus.PARTIALLY_FAILED if failed else RunStatus.COMPLETED
        console.print_results(report)
        return report

    def converge(
        self,
        features: Sequence[str] = (),
        profiles: Sequence[str] = (),
        *,
        force: Iterable[str] = (),
        verify: bool = True,
    ) -> RunReport:
        """plan() + run(), with SIGINT/SIGTERM deferred to Step boundaries."""
        plan = self.plan(features, profiles)
        get_console().print_plan(plan)
        with graceful_stop() as stop:
            return self.run(plan, force=force, verify=verify, stop=stop)

    def _run_step(
        self,
        planned: PlannedStep,
        reached: Dict[str, bool],
        *,
        forced: bool,
        verify: bool,
    ) -> StepResult:
        console = get_console()
        started = time.monotonic()

        def done(outcome: Outcome, reason: str | None = None) -> StepResult:
            return StepResult(
                name=planned.name,
                feature=planned.feature,
                outcome=outcome,
                reason=reason,
                duration=time.monotonic() - started,
            )

        blocker = _blocking_dependency(planned, reached)
        if blocker is not None:
            return done(Outcome.BLOCKED_BY_DEPENDENCY, f"dependency '{blocker}' did not converge")

        console.print_step_start(planned.name, planned.feature)

        if forced:
            console.print_debug(f"[{planned.name}] forced, skipping check")
        else:
            state = _safe_check(planned)
            if state == CheckResult.SATISFIED:
                return done(Outcome.SKIPPED)
            console.print_debug(f"[{planned.name}] check: {state.value}")

        applied = _safe_apply(planned)
        if not applied.ok:
            return done(Outcome.FAILED, applied.reason or "apply failed")

        if verify and _safe_check(planned) == CheckResult.UNSATISFIED:
            return done(
                Outcome.CONTRACT_VIOLATION,
                "apply reported success but check still reports unsatisfied",
            )

        return done(Outcome.APPLIED)
