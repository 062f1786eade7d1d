# steps/rust.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .. import system
from ..model import ApplyResult, CheckResult
from ..ui.console import get_console

CARGO_ENV_LINE = 'source "$HOME/.cargo/env"'
RUSTUP_INSTALLER = (
    "curl --proto '=https' --tlsv1.2 -sSf https://sh.rustup.rs | "
    "sh -s -- -y --profile default --default-toolchain stable"
)


def cargo_bin(home: Path) -> Path:
    return home / ".cargo" / "bin"


def toolchain_env(home: Path) -> Dict[str, str]:
    """Point rustup and cargo at `home` whatever HOME the process inherited."""
    return {
        "HOME": str(home),
        "CARGO_HOME": str(home / ".cargo"),
        "RUSTUP_HOME": str(home / ".rustup"),
    }


@dataclass(frozen=True)
class RustupToolchain:
    """
    A stable Rust toolchain is installed: cargo and rustc resolve on PATH or
    in ~/.cargo/bin.

    With an `owner`, rustup runs as that user (under sudo, via runuser) so the
    toolchain lands in the home that check() looks at.
    """
    home: Path
    name: str = "rustup-toolchain"
    needs: Tuple[str, ...] = ()
    owner: Optional[system.UserContext] = None

    def _resolve(self, program: str) -> Optional[Path]:
        return system.command_available(program, extra_dirs=[cargo_bin(self.home)])

    def _run(self, cmd: List[str], capture: bool = False) -> str:
        if self.owner is not None:
            cmd = system.as_user(cmd, self.owner)
        return system.run(cmd, env=toolchain_env(self.home), capture=capture)

    def check(self) -> CheckResult:
        if self._resolve("cargo") and self._resolve("rustc"):
            return CheckResult.SATISFIED
        return CheckResult.UNSATISFIED

    def apply(self) -> ApplyResult:
        rustup = self._resolve("rustup")
        if rustup is not None:
            self._run([str(rustup), "toolchain", "install", "stable"])
            self._run([str(rustup), "default", "stable"])
        else:
            if system.command_available("curl") is None:
                return ApplyResult.failed("curl is required to bootstrap rustup; install dev-base first")
            self._run(["sh", "-c", RUSTUP_INSTALLER])

        console = get_console()
        for program in ("cargo", "rustc"):
            path = self._resolve(program)
            if path is None:
                return ApplyResult.failed(f"`{program}` not found after installation")
            console.print_info(self._run([str(path), "--version"], capture=True))
        return ApplyResult.applied()
