# steps/files.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Tuple

from .. import system
from ..model import ApplyResult, CheckResult


@dataclass(frozen=True)
class EnsureLine:
    """`line` appears (ignoring surrounding whitespace) in the file at `path`."""
    name: str
    path: Path
    line: str
    needs: Tuple[str, ...] = ()
    owner: Optional[system.UserContext] = None

    def _present(self, content: str) -> bool:
        return any(existing.strip() == self.line for existing in content.splitlines())

    def check(self) -> CheckResult:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return CheckResult.UNSATISFIED
        except PermissionError:
            return CheckResult.INDETERMINATE
        return CheckResult.SATISFIED if self._present(content) else CheckResult.UNSATISFIED

    def apply(self) -> ApplyResult:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        existed = self.path.exists()
        content = self.path.read_text(encoding="utf-8") if existed else ""
        if self._present(content):
            return ApplyResult.applied()

        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(f"\n{self.line}\n" if content else f"{self.line}\n")
        if not existed and self.owner is not None:
            system.ensure_owned(self.path, self.owner, 0o644)
        return ApplyResult.applied()


@dataclass(frozen=True)
class ManagedFile:
    """
    File content equals `render(current content)`.

    `render` must be idempotent (render(render(x)) == render(x)); that is what
    makes the post-apply check pass. `seed` supplies the starting text when
    the file does not exist yet or is empty.
    """
    name: str
    path: Path
    render: Callable[[str], str]
    seed: Callable[[], str] = str
    needs: Tuple[str, ...] = ()
    owner: Optional[system.UserContext] = None
    mode: int = 0o644

    def _current(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def check(self) -> CheckResult:
        try:
            current = self._current()
        except PermissionError:
            return CheckResult.INDETERMINATE
        if not current:
            return CheckResult.UNSATISFIED
        return CheckResult.SATISFIED if self.render(current) == current else CheckResult.UNSATISFIED

    def apply(self) -> ApplyResult:
        current = self._current()
        base = current if current else self.seed()
        desired = self.render(base)

        created = []
        for parent in reversed(self.path.parents):
            if not parent.exists():
                created.append(parent)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        if desired != current:
            self.path.write_text(desired, encoding="utf-8")

        if self.owner is not None:
            for d in created:
                system.ensure_owned(d, self.owner, 0o755)
            system.ensure_owned(self.path, self.owner, self.mode)
        return ApplyResult.applied()
