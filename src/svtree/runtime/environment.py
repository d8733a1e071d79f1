from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from svtree.core.models import FileObject
from svtree.utils.diagnostics import ApplyError


@dataclass(frozen=True)
class EnvPlan:
    """Create/update and delete operations for the env subtree."""

    creates: List[Tuple[str, str]] = field(default_factory=list)
    deletes: List[str] = field(default_factory=list)

    def to_descriptors(
        self,
        env_dir: Path,
        owner: Optional[str] = None,
        group: Optional[str] = None,
    ) -> List[FileObject]:
        """Express the plan as file descriptors for the generic file applier."""
        objects = [
            FileObject(path=env_dir / key, content=value, owner=owner, group=group)
            for key, value in self.creates
        ]
        objects.extend(FileObject(path=env_dir / key, ensure="absent") for key in self.deletes)
        return objects


def reconcile_env(desired: Dict[str, str], current: Dict[str, str]) -> EnvPlan:
    """Every desired key is written; every current key absent from desired is deleted."""
    creates = [(key, value) for key, value in desired.items()]
    deletes = sorted(key for key in current if key not in desired)
    return EnvPlan(creates=creates, deletes=deletes)


def read_current_env(env_dir: Path) -> Dict[str, str]:
    """Read one-file-per-variable env directory into a mapping; values are right-stripped."""
    if not env_dir.is_dir():
        return {}

    env: Dict[str, str] = {}
    for path in sorted(env_dir.iterdir()):
        if not path.is_file():
            continue
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise ApplyError(str(path), f"cannot read env file: {exc}") from exc
        # chpst -e treats values as opaque bytes
        env[path.name] = raw.decode("utf-8", errors="surrogateescape").rstrip()
    return env
