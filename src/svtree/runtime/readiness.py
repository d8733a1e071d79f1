from __future__ import annotations

import logging
import os
import stat
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from svtree.utils.diagnostics import ReadinessCancelled, ReadinessTimeout

logger = logging.getLogger(__name__)

CGROUP_PATH = Path("/proc/1/cgroup")
CONTAINER_MARKERS: Sequence[str] = ("docker", "kubepods", "containerd", "lxc")


def inside_container(cgroup_path: Path = CGROUP_PATH, markers: Iterable[str] = CONTAINER_MARKERS) -> bool:
    """Return True when the init process's cgroup membership names a container runtime."""
    try:
        content = cgroup_path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False

    marker_list = list(markers)
    return any(marker in line for line in content.strip().splitlines() for marker in marker_list)


def is_named_pipe(path: Path) -> bool:
    try:
        return stat.S_ISFIFO(os.stat(path).st_mode)
    except OSError:
        return False


class ReadinessWaiter:
    """Polls for supervise/ok named pipes created by runsv.

    With ``timeout=None`` the wait is unbounded. ``cancel_event`` lets another
    thread abort the wait.
    """

    def __init__(
        self,
        interval: float = 1.0,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interval = interval
        self.timeout = timeout
        self.cancel_event = cancel_event
        self.sleep = sleep
        self.clock = clock

    def wait_for(self, pipe_path: Path, deadline: Optional[float] = None) -> None:
        if deadline is None:
            deadline = self.deadline()
        logger.debug("Waiting until named pipe %s exists.", pipe_path)
        self._poll(
            lambda: is_named_pipe(pipe_path),
            str(pipe_path),
            deadline,
            f"Named pipe {pipe_path} did not appear within {self.timeout}s; is runsvdir running?",
        )

    def wait_all(self, pipe_paths: Iterable[Path]) -> None:
        """Wait for every pipe under one shared deadline."""
        deadline = self.deadline()
        for pipe_path in pipe_paths:
            self.wait_for(pipe_path, deadline=deadline)

    def wait_until(self, predicate: Callable[[], bool], label: str, timeout: Optional[float] = None) -> None:
        """Poll ``predicate`` at ``interval``; ``timeout`` overrides the waiter's own."""
        effective = self.timeout if timeout is None else timeout
        deadline = None if effective is None else self.clock() + effective
        self._poll(predicate, label, deadline, f"{label} not reached within {effective}s")

    def deadline(self) -> Optional[float]:
        return None if self.timeout is None else self.clock() + self.timeout

    def _poll(self, predicate: Callable[[], bool], label: str, deadline: Optional[float], timeout_message: str) -> None:
        while not predicate():
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise ReadinessCancelled(label, f"Cancelled while waiting for {label}")
            if deadline is not None and self.clock() >= deadline:
                raise ReadinessTimeout(label, timeout_message)
            self._pause()
            logger.debug(".")

    def _pause(self) -> None:
        if self.cancel_event is not None:
            self.cancel_event.wait(self.interval)
        else:
            self.sleep(self.interval)
