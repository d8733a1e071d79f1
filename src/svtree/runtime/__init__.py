"""Convergence and lifecycle components for supervised services."""

from svtree.runtime.control import ControlBinary, ControlResult, parse_status
from svtree.runtime.controller import ActionOutcome, LifecycleController, ServiceCapabilities
from svtree.runtime.desired import build_desired_state
from svtree.runtime.engine import ConvergenceEngine
from svtree.runtime.environment import EnvPlan, read_current_env, reconcile_env
from svtree.runtime.readiness import ReadinessWaiter, inside_container
from svtree.runtime.validator import validate_spec

__all__ = [
	"ActionOutcome",
	"ControlBinary",
	"ControlResult",
	"ConvergenceEngine",
	"EnvPlan",
	"LifecycleController",
	"ReadinessWaiter",
	"ServiceCapabilities",
	"build_desired_state",
	"inside_container",
	"parse_status",
	"read_current_env",
	"reconcile_env",
	"validate_spec",
]
