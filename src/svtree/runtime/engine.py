from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from svtree.core.models import ConvergenceResult, FilesystemObject
from svtree.runtime.appliers import FilesystemApplier

logger = logging.getLogger(__name__)


class ConvergenceEngine:
    """
    Applies descriptors in the order given and aggregates change reporting.

    The first failing apply propagates (ApplyError) and ends the pass; objects
    already applied are not rolled back.
    """

    def __init__(self, applier: FilesystemApplier) -> None:
        self.applier = applier

    def apply(
        self,
        descriptors: Sequence[FilesystemObject],
        env_objects: Optional[Iterable[FilesystemObject]] = None,
    ) -> ConvergenceResult:
        result = ConvergenceResult()
        env_list = list(env_objects or [])

        for descriptor in self._ordered(descriptors, env_list):
            changed = self.applier.apply(descriptor)
            key = str(descriptor.path)
            result.per_object_changed[key] = result.per_object_changed.get(key, False) or changed
            if descriptor.role is not None:
                result.per_role_changed[descriptor.role] = (
                    result.per_role_changed.get(descriptor.role, False) or changed
                )
            if changed:
                logger.debug("%s %s updated", descriptor.kind, descriptor.path)
                result.any_changed = True

        return result

    @staticmethod
    def _ordered(descriptors: Sequence[FilesystemObject], env_objects: Sequence[FilesystemObject]):
        """Yield descriptors, slotting env files right after their ``env`` directory."""
        env_dirs = {obj.path.parent for obj in env_objects}
        pending = list(env_objects)

        for descriptor in descriptors:
            yield descriptor
            if pending and descriptor.kind == "directory" and descriptor.path in env_dirs:
                yield from pending
                pending = []

        # env deletions still apply when the env directory is no longer declared
        yield from pending
