# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(eq=False)
class DebkitError(Exception):
    """
    Structured configuration-time error.

    Everything raised from here is detected before any Step is applied, so the
    CLI can render it and exit without touching the machine.
    """
    kind: str
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


class UnknownFeature(DebkitError):
    def __init__(self, name: str, known: list[str] | None = None):
        super().__init__(
            kind="UnknownFeature",
            message=f"feature '{name}' is not registered",
            details={"known": sorted(known or [])},
        )
        self.name = name


class UnknownProfile(DebkitError):
    def __init__(self, name: str, known: list[str] | None = None):
        super().__init__(
            kind="UnknownProfile",
            message=f"profile '{name}' is not registered",
            details={"known": sorted(known or [])},
        )
        self.name = name


class UnknownStep(DebkitError):
    def __init__(self, step: str, missing: str):
        super().__init__(
            kind="UnknownStep",
            message=f"step '{step}' needs '{missing}', which is not part of this run",
        )
        self.step = step
        self.missing = missing


class CyclicDependency(DebkitError):
    def __init__(self, cycle: list[str], what: str = "step"):
        super().__init__(
            kind="CyclicDependency",
            message=f"{what} dependency cycle: {' -> '.join(cycle)}",
        )
        self.cycle = list(cycle)


class ConfigError(DebkitError):
    def __init__(self, message: str, path: str | None = None):
        super().__init__(
            kind="ConfigError",
            message=message,
            details={"path": path} if path else {},
        )
        self.path = path
