from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from pydantic import BaseModel

from svtree.core.models import (
    ConvergenceResult,
    CurrentState,
    FilesystemObjectDescriptor,
    PlatformKind,
    RunState,
    ServiceSpec,
    SymlinkObject,
)
from svtree.core.settings import FrameworkSettings
from svtree.core.signals import is_dispatch_allowed, signal_gate, signal_subcommand
from svtree.runtime.appliers import FilesystemApplier, LocalFilesystemApplier, TemplateRenderer
from svtree.runtime.control import ControlBinary
from svtree.runtime.desired import build_desired_state
from svtree.runtime.engine import ConvergenceEngine
from svtree.runtime.environment import EnvPlan, read_current_env, reconcile_env
from svtree.runtime.readiness import ReadinessWaiter, inside_container
from svtree.runtime.validator import validate_spec
from svtree.utils.diagnostics import ApplyError, ControlInvocationError, ReadinessError

logger = logging.getLogger(__name__)


class ServiceCapabilities(Protocol):
    """Operations a lifecycle backend exposes to callers such as the CLI."""

    def probe_state(self, log: bool = False) -> RunState: ...
    def build_desired(self) -> List[FilesystemObjectDescriptor]: ...
    def reconcile_env(self, current: CurrentState) -> EnvPlan: ...
    def converge(self, current: CurrentState) -> ConvergenceResult: ...
    def enable(self) -> "ActionOutcome": ...
    def disable(self) -> "ActionOutcome": ...
    def start(self, log: bool = False) -> "ActionOutcome": ...
    def stop(self, log: bool = False) -> "ActionOutcome": ...
    def restart(self, log: bool = False) -> "ActionOutcome": ...
    def reload(self, log: bool = False) -> "ActionOutcome": ...
    def signal(self, name: str) -> "ActionOutcome": ...


class ActionOutcome(BaseModel):
    """What one lifecycle action did."""

    action: str
    updated: bool = False
    convergence: Optional[ConvergenceResult] = None
    commands: List[str] = []
    skipped_reason: Optional[str] = None


class LifecycleController:
    """
    Converges and controls one runit service.

    Every action starts with the control-binary pre-flight check and a fresh
    CurrentState snapshot where the action depends on it.
    """

    def __init__(
        self,
        spec: ServiceSpec,
        platform: PlatformKind,
        applier: Optional[FilesystemApplier] = None,
        control: Optional[ControlBinary] = None,
        waiter: Optional[ReadinessWaiter] = None,
        container_check: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.spec = spec
        self.platform = platform
        self.applier = applier or LocalFilesystemApplier()
        self.control = control or ControlBinary(spec.sv_bin, spec.sv_timeout, spec.sv_verbose)
        self.waiter = waiter or ReadinessWaiter()
        self.container_check = container_check or inside_container
        self.engine = ConvergenceEngine(self.applier)

    @classmethod
    def from_settings(
        cls,
        spec: ServiceSpec,
        settings: FrameworkSettings,
        platform: PlatformKind,
        cancel_event: Optional[threading.Event] = None,
    ) -> "LifecycleController":
        renderer = TemplateRenderer(settings.template_dirs)
        waiter = ReadinessWaiter(
            interval=settings.readiness_interval,
            timeout=settings.readiness_timeout,
            cancel_event=cancel_event,
        )
        cgroup_path = settings.cgroup_path
        return cls(
            spec,
            platform,
            applier=LocalFilesystemApplier(renderer),
            waiter=waiter,
            container_check=lambda: inside_container(cgroup_path),
        )

    # State

    def validate(self) -> None:
        validate_spec(self.spec)

    def probe_state(self, log: bool = False) -> RunState:
        return self.control.probe(self._target(log))

    def is_enabled(self) -> bool:
        return (self.spec.service_dir_path / "run").exists()

    def load_current_state(self) -> CurrentState:
        """Validate, then snapshot run-state, enablement and materialized env."""
        self.validate()
        logger.debug("Checking status of service %s", self.spec.name)
        return CurrentState(
            running=self.probe_state() == RunState.RUNNING,
            enabled=self.is_enabled(),
            env=read_current_env(self.spec.sv_dir_path / "env"),
        )

    # Convergence

    def build_desired(self) -> List[FilesystemObjectDescriptor]:
        return build_desired_state(self.spec, self.platform)

    def reconcile_env(self, current: CurrentState) -> EnvPlan:
        return reconcile_env(self.spec.env, current.env)

    def converge(self, current: CurrentState) -> ConvergenceResult:
        spec = self.spec
        descriptors = self.build_desired()

        env_objects = []
        if spec.sv_templates:
            env_objects = self.reconcile_env(current).to_descriptors(
                spec.sv_dir_path / "env", owner=spec.owner, group=spec.group
            )
        if not spec.log_enabled:
            logger.debug("log not specified for %s, continuing", spec.name)
        if not spec.env:
            logger.debug("Environment not specified for %s, continuing", spec.name)

        return self.engine.apply(descriptors, env_objects)

    # Actions

    def create(self) -> ActionOutcome:
        current = self.load_current_state()
        result = self.converge(current)
        logger.info("%s configured", self.spec.name)
        return ActionOutcome(action="create", updated=result.any_changed, convergence=result)

    def enable(self) -> ActionOutcome:
        current = self.load_current_state()
        result = self.converge(current)
        logger.info("%s configured", self.spec.name)

        outcome = ActionOutcome(action="enable", updated=result.any_changed, convergence=result)
        if current.enabled:
            logger.debug("%s already enabled - nothing to do", self.spec.name)
        else:
            self._enable_service()
            outcome.updated = True
            logger.info("%s enabled", self.spec.name)

        if self.spec.restart_on_update:
            if result.role_changed("run"):
                outcome.commands.append(self._invoke("restart"))
            if result.role_changed("log_run") or result.role_changed("log_config"):
                outcome.commands.append(self._invoke("restart", log=True))
        return outcome

    def disable(self) -> ActionOutcome:
        current = self.load_current_state()
        link = self.spec.service_dir_path
        if not current.enabled and not link.is_symlink():
            logger.debug("%s not enabled - nothing to do", self.spec.name)
            return ActionOutcome(action="disable", skipped_reason="not enabled")

        down = self.control.run("down", link, check=False)
        logger.debug("%s down (exit %s)", self.spec.name, down.returncode)

        def stopped() -> bool:
            return self.probe_state() != RunState.RUNNING

        def still_running() -> ControlInvocationError:
            return ControlInvocationError(
                str(self.spec.sv_bin),
                "down",
                str(link),
                returncode=down.returncode,
                stderr=down.stderr,
                message="did not stop the service; activation link left in place",
            )

        if down.returncode != 0:
            if not stopped():
                raise still_running()
        else:
            # runsv reports "run: ..., want down" until the process has exited
            try:
                self.waiter.wait_until(stopped, f"{link} to stop", timeout=self.spec.sv_timeout)
            except ReadinessError as exc:
                raise still_running() from exc

        if not link.is_symlink():
            raise ApplyError(str(link), "activation path is not a symlink; refusing to remove it")
        try:
            link.unlink()
        except OSError as exc:
            raise ApplyError(str(link), str(exc)) from exc
        logger.debug("%s service symlink removed", self.spec.name)
        logger.info("%s disabled", self.spec.name)
        return ActionOutcome(action="disable", updated=True, commands=["down"])

    def start(self, log: bool = False) -> ActionOutcome:
        return self._unconditional("start", log)

    def stop(self, log: bool = False) -> ActionOutcome:
        return self._unconditional("stop", log)

    def restart(self, log: bool = False) -> ActionOutcome:
        return self._unconditional("restart", log)

    def reload(self, log: bool = False) -> ActionOutcome:
        return self._unconditional("force-reload", log, action="reload")

    def signal(self, name: str) -> ActionOutcome:
        """Send a control command when the SignalPolicy allows it for the live run-state."""
        gate = signal_gate(name)
        subcommand = signal_subcommand(name)
        current = self.load_current_state()

        if not is_dispatch_allowed(gate, current.running):
            reason = "not running" if not current.running else "already running"
            logger.debug("%s %s - nothing to do", self.spec.name, reason)
            return ActionOutcome(action=name, skipped_reason=reason)

        self._invoke(subcommand)
        logger.info("%s sent %s", self.spec.name, name)
        return ActionOutcome(action=name, updated=True, commands=[subcommand])

    # Helpers

    def _unconditional(self, subcommand: str, log: bool, action: Optional[str] = None) -> ActionOutcome:
        self.validate()
        command = self._invoke(subcommand, log=log)
        return ActionOutcome(action=action or subcommand, updated=True, commands=[command])

    def _invoke(self, subcommand: str, log: bool = False) -> str:
        target = self._target(log)
        self.control.run(subcommand, target)
        return f"{subcommand} log" if log else subcommand

    def _target(self, log: bool) -> Path:
        path = self.spec.service_dir_path
        return path / "log" if log else path

    def _enable_service(self) -> None:
        spec = self.spec
        logger.debug("Creating symlink in service_dir for %s", spec.name)
        self.applier.apply(SymlinkObject(path=spec.service_dir_path, target=spec.sv_dir_path))

        if self.container_check():
            logger.debug("skipping */supervise/ok check inside a container")
            return

        pipes = [spec.service_dir_path / "supervise" / "ok"]
        if spec.log_enabled:
            pipes.append(spec.service_dir_path / "log" / "supervise" / "ok")
        self.waiter.wait_all(pipes)
