# features.py
#
# The closed catalog of Features and Profiles shipped with debkit. Built once
# at startup from the user's config; never mutated afterwards.

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

from . import system
from .config import DebkitConfig
from .dsl import build, feature, profile, sh, step
from .model import Feature, Plan, Profile
from .registry import FeatureRegistry, ProfileRegistry
from .steps import variety
from .steps.apt import AptUpdate, apt_install
from .steps.docker import GroupMembership
from .steps.files import EnsureLine, ManagedFile
from .steps.rust import CARGO_ENV_LINE, RustupToolchain, cargo_bin
from .ui.console import get_console

BASE_PACKAGES = ("build-essential", "git", "curl", "ca-certificates", "pkg-config")
SUDO_IF_NEEDED = '[ "$(id -u)" -eq 0 ] || set -- sudo; "$@" '


def dev_base() -> Feature:
    return feature(
        "dev-base",
        AptUpdate,
        step(apt_install, "apt-install-base", *BASE_PACKAGES),
        description="Fresh package index and the base build toolchain",
    )


def rust(user: system.UserContext) -> Feature:
    home = user.home
    return (
        build("rust")
        .depends_on("dev-base")
        .describe("Rust toolchain via rustup")
        .define_step(step(RustupToolchain, home=home, owner=user))
        .define_step(step(EnsureLine, name="cargo-env-bashrc", path=home / ".bashrc",
                          line=CARGO_ENV_LINE, owner=user))
        .define_step(step(EnsureLine, name="cargo-env-profile", path=home / ".profile",
                          line=CARGO_ENV_LINE, owner=user))
        .build()
    )


def _variety_conf_renderer(folder: str, interval_minutes: int):
    def render(existing: str) -> str:
        return variety.configure_variety_conf_text(existing, folder, interval_minutes)
    return render


def variety_feature(config: DebkitConfig, user: system.UserContext) -> Feature:
    folder = config.wallpapers.folder
    return feature(
        "variety",
        step(apt_install, "apt-install-variety", "variety"),
        step(
            ManagedFile,
            name="variety-conf",
            path=variety.variety_conf_path(user.home),
            render=_variety_conf_renderer(folder, config.variety.interval_minutes),
            seed=variety.default_variety_conf,
            needs=("apt-install-variety",),
            owner=user,
        ),
        step(
            ManagedFile,
            name="variety-autostart",
            path=variety.autostart_path(user.home),
            render=variety.normalize_desktop_entry,
            seed=variety.default_desktop_entry,
            needs=("apt-install-variety",),
            owner=user,
        ),
        needs=["dev-base"],
        description="Variety wallpaper rotator for GNOME",
    )


def docker(user: system.UserContext) -> Feature:
    return feature(
        "docker",
        step(apt_install, "apt-install-docker", "docker.io"),
        sh(
            "docker-service",
            check="systemctl is-enabled --quiet docker && systemctl is-active --quiet docker",
            apply=SUDO_IF_NEEDED + "systemctl enable --now docker",
            needs=["apt-install-docker"],
        ),
        step(GroupMembership, name="docker-group", user=user.name, group="docker",
             needs=("apt-install-docker",)),
        needs=["dev-base"],
        description="Docker engine from the Debian archive, current user in the docker group",
    )


def foundation_profile(config: DebkitConfig, known: List[str]) -> Profile:
    """
    Profile made of the Features listed under `foundation.install`.

    Unsupported names are reported and dropped so the table stays valid.
    """
    console = get_console()
    names: List[str] = []
    for name in config.foundation.install:
        if name not in known:
            console.print_warning(f"unsupported foundation target `{name}` in config; skipping")
            continue
        if name not in names:
            names.append(name)
    return profile("foundation", *names, description="Features listed under foundation.install in the config")


def default_registries(
    config: DebkitConfig,
    user: system.UserContext,
) -> Tuple[FeatureRegistry, ProfileRegistry]:
    features = FeatureRegistry([
        dev_base(),
        rust(user),
        variety_feature(config, user),
        docker(user),
    ])
    profiles = ProfileRegistry(
        [
            profile("minimal", "dev-base", description="Base build toolchain only"),
            profile("workstation", "dev-base", "rust", description="Development workstation"),
            profile("desktop", "dev-base", "rust", "variety", description="Workstation plus desktop niceties"),
            foundation_profile(config, features.names()),
        ],
        features,
    )
    return features, profiles


def preflight_warnings(plan: Plan, config: DebkitConfig) -> List[str]:
    """Non-fatal problems worth telling the operator before a run."""
    warnings: List[str] = []
    if "variety" in plan.features and not Path(config.wallpapers.folder).exists():
        warnings.append(f"wallpapers folder does not exist: {config.wallpapers.folder}")
    return warnings


def _tool_version(program: str, home: Path) -> str:
    path = system.command_available(program, extra_dirs=[cargo_bin(home)])
    if path is None:
        return "not installed"
    try:
        return system.run([str(path), "--version"], capture=True) or "unknown version"
    except (OSError, system.CommandFailed):
        return f"present at {path}, version unknown"


def status_details(plan: Plan, config: DebkitConfig, user: system.UserContext) -> List[str]:
    """Read-only facts about the planned Features, beyond pass/fail checks."""
    lines: List[str] = []
    if "rust" in plan.features:
        for program in ("cargo", "rustc"):
            lines.append(f"rust: {program}: {_tool_version(program, user.home)}")
    if "variety" in plan.features:
        version = system.dpkg_version("variety")
        lines.append(f"variety: package: {version or 'not installed'}")
        folder = Path(config.wallpapers.folder)
        lines.append(f"variety: wallpapers folder: {folder} ({'exists' if folder.is_dir() else 'missing'})")
        autostart = variety.autostart_path(user.home)
        lines.append(f"variety: autostart entry: {autostart} ({'present' if autostart.exists() else 'missing'})")
    return lines
