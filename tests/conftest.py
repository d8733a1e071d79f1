import os
import pytest
import sys
from pathlib import Path

# Ensure src/ is in the python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from svtree.core.models import ServiceSpec  # noqa: E402

FAKE_SV_SCRIPT = """#!/bin/sh
printf '%s\\n' "$*" >> "{calls}"
while [ $# -gt 2 ]; do shift; done
cmd="$1"
target="$2"
case "$cmd" in
  status)
    if [ -f "{lag}" ] && [ "$(cat "{state}")" = "down" ] && [ "$(cat "{lag}")" -gt 0 ]; then
      echo $(($(cat "{lag}") - 1)) > "{lag}"
      echo "run: $target: (pid 123) 5s, want down"
      exit 0
    fi
    if [ -f "{state}" ] && [ "$(cat "{state}")" = "run" ]; then
      echo "run: $target: (pid 123) 5s"
      exit 0
    fi
    echo "down: $target: 1s"
    exit 3
    ;;
esac
if [ -f "{fail}" ]; then
  echo "fail: $target: unable to control" >&2
  exit 1
fi
case "$cmd" in
  down|stop) echo down > "{state}" ;;
  up|start|restart|once) echo run > "{state}" ;;
esac
exit 0
"""


class FakeSv:
    """A shell script standing in for runit's sv, recording every call."""

    def __init__(self, root: Path):
        self.root = root
        self.path = root / "sv"
        self.calls_file = root / "sv.calls"
        self.state_file = root / "sv.state"
        self.fail_file = root / "sv.fail"
        self.lag_file = root / "sv.lag"
        self.path.write_text(
            FAKE_SV_SCRIPT.format(
                calls=self.calls_file,
                state=self.state_file,
                fail=self.fail_file,
                lag=self.lag_file,
            )
        )
        os.chmod(self.path, 0o755)

    def set_running(self, running: bool) -> None:
        self.state_file.write_text("run\n" if running else "down\n")

    def fail_mutations(self) -> None:
        self.fail_file.write_text("1")

    def slow_stop(self, polls: int) -> None:
        """Keep reporting "run: ..., want down" for this many status calls after down."""
        self.lag_file.write_text(f"{polls}\n")

    @property
    def calls(self) -> list:
        if not self.calls_file.exists():
            return []
        return self.calls_file.read_text().splitlines()

    def subcommands(self) -> list:
        return [call.split()[-2] for call in self.calls]

    def mutations(self) -> list:
        return [call for call in self.calls if call.split()[-2] != "status"]


class RecordingApplier:
    """Applier double that records descriptors and reports a fixed change flag."""

    def __init__(self, changed: bool = True, changed_paths=None):
        self.changed = changed
        self.changed_paths = set(changed_paths or [])
        self.applied = []

    def apply(self, descriptor) -> bool:
        self.applied.append(descriptor)
        if self.changed_paths:
            return str(descriptor.path) in self.changed_paths
        return self.changed


@pytest.fixture
def fake_sv(tmp_path):
    root = tmp_path / "bin"
    root.mkdir()
    return FakeSv(root)


@pytest.fixture
def template_dir(tmp_path):
    templates = tmp_path / "templates"
    templates.mkdir()
    (templates / "sv-web-run.j2").write_text("#!/bin/sh\nexec web --port {{ options.port }}\n")
    (templates / "sv-web-log-run.j2").write_text("#!/bin/sh\nexec svlogd -t ./main\n")
    (templates / "sv-web-check.j2").write_text("#!/bin/sh\nexit 0\n")
    (templates / "sv-web-finish.j2").write_text("#!/bin/sh\nexit 0\n")
    (templates / "sv-web-t.j2").write_text("#!/bin/sh\nexit 1\n")
    return templates


@pytest.fixture
def service_spec(tmp_path, fake_sv):
    (tmp_path / "init.d").mkdir()
    return ServiceSpec(
        name="web",
        sv_dir=tmp_path / "sv",
        service_dir=tmp_path / "service",
        lsb_init_dir=tmp_path / "init.d",
        default_log_root=tmp_path / "log",
        sv_bin=fake_sv.path,
        options={"port": 8080},
    )
