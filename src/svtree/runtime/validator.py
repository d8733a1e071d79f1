import os

from svtree.core.models import ServiceSpec
from svtree.utils.diagnostics import MissingControlBinary


def validate_spec(spec: ServiceSpec) -> None:
    """
    Pre-flight gate run before anything touches the filesystem.

    Raises MissingControlBinary when sv_bin is missing or not executable.
    """
    sv_bin = spec.sv_bin
    if not sv_bin.is_file() or not os.access(sv_bin, os.X_OK):
        raise MissingControlBinary(str(sv_bin), spec.name)
