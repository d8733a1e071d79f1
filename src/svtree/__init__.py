from __future__ import annotations

from svtree.core.models import (
	ConvergenceResult,
	CurrentState,
	LogConfig,
	PlatformKind,
	RunState,
	ServiceSpec,
)
from svtree.core.signals import SIGNAL_POLICY, SignalGate
from svtree.runtime.controller import LifecycleController
from svtree.utils.diagnostics import (
	ApplyError,
	ConfigError,
	ControlInvocationError,
	MissingControlBinary,
	ReadinessCancelled,
	ReadinessTimeout,
	SvtreeError,
)

__all__ = [
	"ApplyError",
	"ConfigError",
	"ControlInvocationError",
	"ConvergenceResult",
	"CurrentState",
	"LifecycleController",
	"LogConfig",
	"MissingControlBinary",
	"PlatformKind",
	"ReadinessCancelled",
	"ReadinessTimeout",
	"RunState",
	"SIGNAL_POLICY",
	"ServiceSpec",
	"SignalGate",
	"SvtreeError",
]
