"""Console output formatting utilities for debkit."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Mapping, Optional, Sequence

if TYPE_CHECKING:
    from debkit.model import CheckResult, Plan, RunReport, StepResult
    from debkit.registry import FeatureRegistry, ProfileRegistry


_OUTCOME_LABELS = {
    "skipped": "SKIPPED (already satisfied)",
    "applied": "APPLIED",
    "failed": "FAILED",
    "blocked-by-dependency": "BLOCKED",
    "contract-violation": "CONTRACT VIOLATION",
    "not-run": "NOT RUN",
}


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_plan(self, plan: Plan) -> None:
        """Print the resolved Features and Step order."""
        print("\nPLAN")
        print(f"Features: {', '.join(plan.features) if plan.features else '(none)'}")
        print(f"Steps: {len(plan.steps)}")
        for i, planned in enumerate(plan.steps, start=1):
            after = f" (after {', '.join(planned.needs)})" if planned.needs else ""
            print(f"  {i:>2}. {planned.name} [{planned.feature}]{after}")
        print()

    def print_step_start(self, name: str, feature: str) -> None:
        """Print step start message."""
        print(f"STEP: {name} [{feature}]")

    def print_step_result(self, result: StepResult) -> None:
        """Print the outcome of one Step."""
        label = _OUTCOME_LABELS.get(result.outcome.value, result.outcome.value.upper())
        if result.outcome.value == "blocked-by-dependency":
            print(f"STEP: {result.name} [{result.feature}]")
        print(f"STATUS: {label}")
        if result.reason:
            if self.debug:
                print(f"Reason: {result.reason}")
            else:
                print(f"Reason: {result.reason.splitlines()[0]}")

    def print_results(self, report: RunReport) -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for r in report.results:
            status_display = r.outcome.value.upper()
            print(f"  {r.name}: {status_display}")
        seen = dict.fromkeys(r.outcome for r in report.results)
        if seen:
            print("\n" + ", ".join(f"{report.count(o)} {o.value}" for o in seen))
        print(f"\nOverall: {report.status.value.upper()}")

    def print_status(self, states: Mapping[str, CheckResult], details: Sequence[str] = ()) -> None:
        """Print read-only check results, then any per-Feature detail lines."""
        self.print_header("STATUS")
        for name, state in states.items():
            print(f"  {name}: {state.value}")
        if details:
            self.print_header("DETAILS")
            for line in details:
                print(f"  {line}")

    def print_catalog(self, features: FeatureRegistry, profiles: ProfileRegistry) -> None:
        """Print available Features and Profiles."""
        print("Available features:")
        for name, feature in features.features.items():
            needs = f" (needs {', '.join(feature.needs)})" if feature.needs else ""
            print(f"- {name}{needs}: {feature.description}")
        print("\nAvailable profiles:")
        for name, profile in profiles.profiles.items():
            members = ", ".join(profile.features) if profile.features else "(empty)"
            print(f"- {name} [{members}]: {profile.description}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_warning(self, message: str) -> None:
        """Print a non-fatal warning."""
        print(f"warning: {message}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
