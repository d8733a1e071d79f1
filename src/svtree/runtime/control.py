from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from svtree.core.models import RunState
from svtree.utils.diagnostics import ControlInvocationError

logger = logging.getLogger(__name__)

RUNNING_PREFIX = "run:"


@dataclass(frozen=True)
class ControlResult:
    """Captured outcome of one control-binary call."""

    returncode: int
    stdout: str
    stderr: str


def parse_status(stdout: str, returncode: int) -> RunState:
    """Classify ``sv status`` output.

    Running only when the first line starts with ``run:`` and the call exited 0.
    """
    lines = stdout.splitlines()
    first_line = lines[0] if lines else ""
    if returncode == 0 and first_line.startswith(RUNNING_PREFIX):
        return RunState.RUNNING
    return RunState.STOPPED


class ControlBinary:
    """Builds and runs ``<sv_bin> [-w <timeout>] [-v] <subcommand> <target>``."""

    def __init__(self, sv_bin: Path, timeout: Optional[int] = None, verbose: bool = False) -> None:
        self.sv_bin = sv_bin
        self.timeout = timeout
        self.verbose = verbose

    def command(self, subcommand: str, target: Path) -> List[str]:
        argv = [str(self.sv_bin)]
        if self.timeout is not None:
            argv.extend(["-w", str(self.timeout)])
        if self.verbose:
            argv.append("-v")
        argv.extend([subcommand, str(target)])
        return argv

    def run(self, subcommand: str, target: Path, check: bool = True) -> ControlResult:
        """Run one subcommand. With ``check`` a non-zero exit raises ControlInvocationError."""
        argv = self.command(subcommand, target)
        logger.debug("Running %s", " ".join(argv))
        try:
            completed = subprocess.run(argv, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise ControlInvocationError(
                str(self.sv_bin),
                subcommand,
                str(target),
                message=f"could not be executed ({exc})",
            ) from exc

        result = ControlResult(
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if check and result.returncode != 0:
            raise ControlInvocationError(
                str(self.sv_bin),
                subcommand,
                str(target),
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result

    def probe(self, target: Path) -> RunState:
        """Status probe; a non-zero exit is a STOPPED verdict, never an error."""
        result = self.run("status", target, check=False)
        state = parse_status(result.stdout, result.returncode)
        logger.debug("Status of %s: %s (exit %s)", target, state.value, result.returncode)
        return state
