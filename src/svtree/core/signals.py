from __future__ import annotations

from enum import Enum
from typing import Dict


class SignalGate(str, Enum):
    """Run-state precondition for sending a control command."""

    REQUIRES_RUNNING = "requires_running"
    REQUIRES_STOPPED = "requires_stopped"
    UNCONDITIONAL = "unconditional"


# Single source of truth for gated dispatch.
SIGNAL_POLICY: Dict[str, SignalGate] = {
    "down": SignalGate.REQUIRES_RUNNING,
    "hup": SignalGate.REQUIRES_RUNNING,
    "int": SignalGate.REQUIRES_RUNNING,
    "term": SignalGate.REQUIRES_RUNNING,
    "kill": SignalGate.REQUIRES_RUNNING,
    "quit": SignalGate.REQUIRES_RUNNING,
    "up": SignalGate.REQUIRES_STOPPED,
    "once": SignalGate.REQUIRES_STOPPED,
    "cont": SignalGate.REQUIRES_STOPPED,
    "usr1": SignalGate.UNCONDITIONAL,
    "usr2": SignalGate.UNCONDITIONAL,
}

# sv takes the numeric form for user signals
_SUBCOMMANDS: Dict[str, str] = {
    "usr1": "1",
    "usr2": "2",
}


def signal_gate(name: str) -> SignalGate:
    """Return the gate for a signal name. Unknown names raise ValueError."""
    try:
        return SIGNAL_POLICY[name.lower()]
    except KeyError:
        known = ", ".join(sorted(SIGNAL_POLICY))
        raise ValueError(f"Unknown signal '{name}'. Expected one of: {known}") from None


def signal_subcommand(name: str) -> str:
    """Map a signal name to the control-binary subcommand that delivers it."""
    signal_gate(name)
    lowered = name.lower()
    return _SUBCOMMANDS.get(lowered, lowered)


def is_dispatch_allowed(gate: SignalGate, running: bool) -> bool:
    if gate == SignalGate.REQUIRES_RUNNING:
        return running
    if gate == SignalGate.REQUIRES_STOPPED:
        return not running
    return True
