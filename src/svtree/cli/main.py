import typer
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from svtree.cli.formatter import OutputFormatter, configure_logging
from svtree.config.loader import load_services
from svtree.core.models import CurrentState, PlatformKind, ServiceSpec
from svtree.core.settings import FrameworkSettings
from svtree.runtime.controller import ActionOutcome, LifecycleController
from svtree.runtime.platform import detect_platform
from svtree.utils.diagnostics import SvtreeError

app = typer.Typer(name="svtree", help="Converge and control runit supervised services", rich_markup_mode=None)


@dataclass
class CLIState:
    settings: FrameworkSettings
    services: Dict[str, ServiceSpec]
    platform: PlatformKind


def _fail(message: str) -> None:
    OutputFormatter.log(message, severity="error")
    raise typer.Exit(code=1)


def _state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        _fail("CLI state was not initialised.")
    return state


def _controller(ctx: typer.Context, service: str) -> LifecycleController:
    state = _state(ctx)
    spec = state.services.get(service)
    if spec is None:
        known = ", ".join(sorted(state.services)) or "none"
        _fail(f"Service '{service}' not found (configured: {known}).")
    return LifecycleController.from_settings(spec, state.settings, state.platform)


def _run_action(ctx: typer.Context, service: str, action: str, **kwargs) -> ActionOutcome:
    controller = _controller(ctx, service)
    try:
        outcome = getattr(controller, action)(**kwargs)
    except SvtreeError as exc:
        _fail(str(exc))
    OutputFormatter.print_outcome(service, outcome)
    return outcome


@app.callback()
def main(
    ctx: typer.Context,
    config: Path = typer.Option(Path("svtree.yaml"), "--config", "-c", help="Path to svtree.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    readiness_timeout: Optional[float] = typer.Option(
        None,
        "--readiness-timeout",
        min=0.1,
        help="Give up waiting for supervise/ok after this many seconds (default: wait forever)",
    ),
    platform: Optional[PlatformKind] = typer.Option(None, "--platform", help="Override platform detection"),
):
    """Converge and control runit supervised services."""
    try:
        settings, services = load_services(config)
    except SvtreeError as exc:
        configure_logging("INFO")
        _fail(str(exc))

    if readiness_timeout is not None:
        settings = settings.model_copy(update={"readiness_timeout": readiness_timeout})

    configure_logging("DEBUG" if verbose else settings.log_level)
    effective_platform = platform or settings.platform or detect_platform()
    ctx.obj = CLIState(settings=settings, services=services, platform=effective_platform)


@app.command("list")
def list_services(ctx: typer.Context):
    """List configured services."""
    OutputFormatter.print_names(sorted(_state(ctx).services))


@app.command()
def status(
    ctx: typer.Context,
    service: Optional[str] = typer.Argument(None, help="Service name (default: all)"),
):
    """Show run-state and enablement of services."""
    state = _state(ctx)
    names = [service] if service else sorted(state.services)

    states: Dict[str, Optional[CurrentState]] = {}
    errors: Dict[str, str] = {}
    for name in names:
        controller = _controller(ctx, name)
        try:
            states[name] = controller.load_current_state()
        except SvtreeError as exc:
            states[name] = None
            errors[name] = str(exc)

    OutputFormatter.print_status(states, errors)
    if errors:
        raise typer.Exit(code=1)


@app.command()
def converge(ctx: typer.Context, service: str = typer.Argument(..., help="Service name")):
    """Write the service directory without touching run-state."""
    _run_action(ctx, service, "create")


@app.command()
def enable(ctx: typer.Context, service: str = typer.Argument(..., help="Service name")):
    """Converge, link into the service directory and wait for runsv."""
    _run_action(ctx, service, "enable")


@app.command()
def disable(ctx: typer.Context, service: str = typer.Argument(..., help="Service name")):
    """Bring the service down and remove its activation link."""
    _run_action(ctx, service, "disable")


@app.command()
def start(
    ctx: typer.Context,
    service: str = typer.Argument(..., help="Service name"),
    log: bool = typer.Option(False, "--log", help="Target the log service"),
):
    """Start the service."""
    _run_action(ctx, service, "start", log=log)


@app.command()
def stop(
    ctx: typer.Context,
    service: str = typer.Argument(..., help="Service name"),
    log: bool = typer.Option(False, "--log", help="Target the log service"),
):
    """Stop the service."""
    _run_action(ctx, service, "stop", log=log)


@app.command()
def restart(
    ctx: typer.Context,
    service: str = typer.Argument(..., help="Service name"),
    log: bool = typer.Option(False, "--log", help="Target the log service"),
):
    """Restart the service."""
    _run_action(ctx, service, "restart", log=log)


@app.command()
def reload(
    ctx: typer.Context,
    service: str = typer.Argument(..., help="Service name"),
    log: bool = typer.Option(False, "--log", help="Target the log service"),
):
    """Force-reload the service."""
    _run_action(ctx, service, "reload", log=log)


@app.command()
def signal(
    ctx: typer.Context,
    service: str = typer.Argument(..., help="Service name"),
    name: str = typer.Argument(..., help="Signal: up, down, once, cont, hup, int, term, kill, quit, usr1, usr2"),
):
    """Send a state-gated control signal."""
    controller = _controller(ctx, service)
    try:
        outcome = controller.signal(name)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="NAME")
    except SvtreeError as exc:
        _fail(str(exc))
    OutputFormatter.print_outcome(service, outcome)


if __name__ == "__main__":
    app()
