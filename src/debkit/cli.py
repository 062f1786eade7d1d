# cli.py
from __future__ import annotations

import sys

import click

from debkit import system
from debkit.config import DebkitConfig, config_path, load_or_init
from debkit.errors import DebkitError
from debkit.features import default_registries, preflight_warnings, status_details
from debkit.runner import ConvergenceEngine, graceful_stop
from debkit.ui.console import Console, get_console, set_console


def build_engine() -> tuple[ConvergenceEngine, DebkitConfig, system.UserContext]:
    """Load config, resolve the target user and build the closed registries."""
    config = load_or_init()
    try:
        user = system.target_user()
    except RuntimeError as e:
        raise DebkitError(kind="EnvironmentError", message=str(e)) from e
    features, profiles = default_registries(config, user)
    return ConvergenceEngine(features, profiles), config, user


def _require_request(features: tuple[str, ...], profiles: tuple[str, ...]) -> None:
    if not features and not profiles:
        get_console().print_error(
            "Nothing requested",
            "Name at least one feature or pass --profile.",
            suggestion="See what is available:\n  debkit list",
        )
        sys.exit(1)


def _fail(ctx: click.Context, e: Exception) -> None:
    console = get_console()
    if isinstance(e, DebkitError):
        details = [f"{k}: {v}" for k, v in e.details.items()]
        console.print_error(e.kind, e.message, details=details or None)
        if ctx.obj.get("debug", False):
            import traceback
            traceback.print_exc()
    else:
        console.print_exception(e)
    sys.exit(1)


profile_option = click.option(
    "--profile", "profiles", multiple=True, help="Profile to converge (repeatable)",
)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.version_option(package_name="debkit")
@click.pass_context
def cli(ctx, debug):
    """debkit: converge a Debian workstation to a declared state."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command("list")
@click.pass_context
def list_cmd(ctx):
    """List available features and profiles."""
    try:
        engine, _config, _user = build_engine()
    except Exception as e:
        _fail(ctx, e)
    get_console().print_catalog(engine.features, engine.profiles)


@cli.command()
@click.argument("features", nargs=-1)
@profile_option
@click.pass_context
def plan(ctx, features, profiles):
    """Show the ordered steps a request would run, without running them."""
    _require_request(features, profiles)
    try:
        engine, _config, _user = build_engine()
        result = engine.plan(features, profiles)
    except Exception as e:
        _fail(ctx, e)
    get_console().print_plan(result)


@cli.command()
@click.argument("features", nargs=-1)
@profile_option
@click.pass_context
def status(ctx, features, profiles):
    """Run read-only checks for every planned step."""
    _require_request(features, profiles)
    console = get_console()
    try:
        engine, config, user = build_engine()
        result = engine.plan(features, profiles)
        for warning in preflight_warnings(result, config):
            console.print_warning(warning)
        states = engine.status(result)
        details = status_details(result, config, user)
    except Exception as e:
        _fail(ctx, e)
    console.print_status(states, details)


@cli.command()
@click.argument("features", nargs=-1)
@profile_option
@click.option("--reinstall", multiple=True, help="Re-apply every step of this feature regardless of its check")
@click.option("--force", "force_steps", multiple=True, help="Re-apply this step regardless of its check")
@click.option("--verify/--no-verify", default=True, show_default=True,
              help="Re-check each step after applying it")
@click.pass_context
def install(ctx, features, profiles, reinstall, force_steps, verify):
    """Converge the machine to the requested features and profiles."""
    _require_request(features, profiles)
    console = get_console()

    try:
        engine, config, _user = build_engine()
        result = engine.plan(features, profiles)

        force = set(force_steps)
        for name in reinstall:
            if name not in result.features:
                raise DebkitError(kind="UnknownFeature",
                                  message=f"--reinstall {name}: feature is not part of this request")
            force.update(s.name for s in engine.features.expand(name).steps)
        unknown = sorted(force - set(result.step_names))
        if unknown:
            raise DebkitError(kind="UnknownStep", message=f"--force names steps outside this plan: {unknown}")

        for warning in preflight_warnings(result, config):
            console.print_warning(warning)

        console.print_plan(result)
        with graceful_stop() as stop:
            report = engine.run(result, force=force, verify=verify, stop=stop)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        _fail(ctx, e)

    sys.exit(report.exit_code)


@cli.command("config-path")
@click.pass_context
def config_path_cmd(ctx):
    """Print the path of the config file."""
    try:
        click.echo(str(config_path()))
    except Exception as e:
        _fail(ctx, e)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
