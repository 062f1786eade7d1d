from __future__ import annotations

import os
import time
from pathlib import Path

import pytest

from debkit import system
from debkit.model import CheckResult
from debkit.steps.apt import AptInstall, AptUpdate, apt_install
from debkit.steps.docker import GroupMembership
from debkit.steps.rust import RUSTUP_INSTALLER, RustupToolchain
from debkit.steps.shell import ShellStep


@pytest.fixture
def apt_calls(monkeypatch: pytest.MonkeyPatch) -> list:
    calls: list = []
    monkeypatch.setattr(system, "apt_get", lambda args: calls.append(list(args)))
    return calls


def test_apt_update_freshness(tmp_path: Path, apt_calls: list) -> None:
    stamp = tmp_path / "update-success-stamp"
    step = AptUpdate(stamp=stamp, max_age_hours=1)
    assert step.check() == CheckResult.UNSATISFIED

    stamp.touch()
    assert step.check() == CheckResult.SATISFIED

    old = time.time() - 2 * 3600
    os.utime(stamp, (old, old))
    assert step.check() == CheckResult.UNSATISFIED

    assert step.apply().ok
    assert apt_calls[-1][-1] == "update"
    assert str(stamp) in apt_calls[-1][1]


def test_apt_install_only_installs_missing(monkeypatch: pytest.MonkeyPatch, apt_calls: list) -> None:
    installed = {"git": "1:2.39"}
    monkeypatch.setattr(system, "dpkg_version", lambda pkg: installed.get(pkg))
    step = apt_install("apt-install-base", "git", "curl")

    assert step.needs == ("apt-update",)
    assert step.check() == CheckResult.UNSATISFIED
    step.apply()
    assert apt_calls == [["install", "-y", "curl"]]

    installed["curl"] = "7.88"
    assert step.check() == CheckResult.SATISFIED


def test_apt_install_forced_when_satisfied_reinstalls(monkeypatch: pytest.MonkeyPatch, apt_calls: list) -> None:
    monkeypatch.setattr(system, "dpkg_version", lambda pkg: "1.0")
    AptInstall(name="x", packages=("variety",)).apply()
    assert apt_calls == [["install", "-y", "--reinstall", "variety"]]


def test_apt_install_requires_packages() -> None:
    with pytest.raises(ValueError):
        apt_install("empty")


def test_rustup_toolchain_finds_cargo_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PATH", str(tmp_path / "empty-path"))
    step = RustupToolchain(home=tmp_path)
    assert step.check() == CheckResult.UNSATISFIED

    bin_dir = tmp_path / ".cargo" / "bin"
    bin_dir.mkdir(parents=True)
    for program in ("cargo", "rustc"):
        exe = bin_dir / program
        exe.write_text("#!/bin/sh\n", encoding="utf-8")
        exe.chmod(0o755)
    assert step.check() == CheckResult.SATISFIED


def test_rustup_toolchain_uses_existing_rustup(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    bin_dir = tmp_path / ".cargo" / "bin"
    bin_dir.mkdir(parents=True)
    for program in ("rustup", "cargo", "rustc"):
        exe = bin_dir / program
        exe.write_text("#!/bin/sh\n", encoding="utf-8")
        exe.chmod(0o755)
    monkeypatch.setenv("PATH", str(tmp_path / "empty-path"))

    calls: list = []

    def fake_run(cmd, *, env=None, capture=False):
        calls.append(cmd[1:])
        return "rustc 1.80.0"

    monkeypatch.setattr(system, "run", fake_run)
    assert RustupToolchain(home=tmp_path).apply().ok
    assert calls[:2] == [["toolchain", "install", "stable"], ["default", "stable"]]


def test_shell_step(tmp_path: Path) -> None:
    marker = tmp_path / "marker"
    step = ShellStep(name="marker", check_cmd=f"test -f {marker}", apply_cmd=f"touch {marker}")
    assert step.check() == CheckResult.UNSATISFIED
    assert step.apply().ok
    assert step.check() == CheckResult.SATISFIED


def test_shell_step_failure_reports_reason() -> None:
    result = ShellStep(name="bad", check_cmd="false", apply_cmd="exit 3").apply()
    assert not result.ok
    assert "exit=3" in result.reason


def test_group_membership_without_user_is_indeterminate() -> None:
    step = GroupMembership(name="docker-group", user=None, group="docker")
    assert step.check() == CheckResult.INDETERMINATE
    assert not step.apply().ok


def test_group_membership_missing_group(monkeypatch: pytest.MonkeyPatch) -> None:
    import grp

    def no_group(name):
        raise KeyError(name)

    monkeypatch.setattr(grp, "getgrnam", no_group)
    assert GroupMembership(name="g", user="alice", group="docker").check() == CheckResult.UNSATISFIED


def test_privileged_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(system, "is_root", lambda: True)
    assert system.privileged(["apt-get", "update"]) == ["apt-get", "update"]

    monkeypatch.setattr(system, "is_root", lambda: False)
    monkeypatch.setattr(system, "command_available", lambda program, extra_dirs=None: Path("/usr/bin/sudo"))
    assert system.privileged(["apt-get"], keep_env=["DEBIAN_FRONTEND"]) == [
        "sudo", "--preserve-env=DEBIAN_FRONTEND", "apt-get",
    ]

    monkeypatch.setattr(system, "command_available", lambda program, extra_dirs=None: None)
    with pytest.raises(PermissionError):
        system.privileged(["apt-get"])


def test_rustup_installs_into_the_target_user_home_under_sudo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    home = tmp_path / "dev"
    monkeypatch.setenv("PATH", str(tmp_path / "empty-path"))
    monkeypatch.setenv("HOME", "/root")
    monkeypatch.setattr(system, "is_root", lambda: True)
    real_available = system.command_available
    monkeypatch.setattr(
        system, "command_available",
        lambda program, extra_dirs=None: Path("/usr/bin/curl") if program == "curl"
        else real_available(program, extra_dirs),
    )

    calls: list = []

    def fake_run(cmd, *, env=None, capture=False):
        calls.append((cmd, env))
        if cmd[-1] == RUSTUP_INSTALLER:
            bin_dir = Path(env["CARGO_HOME"]) / "bin"
            bin_dir.mkdir(parents=True)
            for program in ("cargo", "rustc"):
                exe = bin_dir / program
                exe.write_text("#!/bin/sh\n", encoding="utf-8")
                exe.chmod(0o755)
        return "cargo 1.80.0"

    monkeypatch.setattr(system, "run", fake_run)
    owner = system.UserContext(name="dev", home=home, uid=1000, gid=1000)
    step = RustupToolchain(home=home, owner=owner)

    assert step.apply().ok
    install_cmd, install_env = calls[0]
    assert install_cmd[:4] == ["runuser", "-u", "dev", "--"]
    assert install_env["HOME"] == str(home)
    assert install_env["CARGO_HOME"] == str(home / ".cargo")
    assert install_env["RUSTUP_HOME"] == str(home / ".rustup")
    assert step.check() == CheckResult.SATISFIED


def test_as_user_is_a_no_op_when_not_root(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(system, "is_root", lambda: False)
    user = system.UserContext(name="dev", home=Path("/home/dev"))
    assert system.as_user(["rustup", "show"], user) == ["rustup", "show"]
