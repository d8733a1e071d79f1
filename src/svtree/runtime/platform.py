from pathlib import Path

from svtree.core.models import PlatformKind

OS_RELEASE_PATH = Path("/etc/os-release")


def detect_platform(os_release: Path = OS_RELEASE_PATH) -> PlatformKind:
    """Classify the host from the ``ID`` field of os-release."""
    if not os_release.is_file():
        return PlatformKind.GENERIC

    for line in os_release.read_text(encoding="utf-8", errors="replace").splitlines():
        key, _, value = line.partition("=")
        if key.strip() == "ID":
            if value.strip().strip('"\'').lower() == PlatformKind.DEBIAN.value:
                return PlatformKind.DEBIAN
            break

    return PlatformKind.GENERIC
