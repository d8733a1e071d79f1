from __future__ import annotations

import grp
import logging
import os
import pwd
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Protocol

from jinja2 import ChoiceLoader, DictLoader, Environment, FileSystemLoader, StrictUndefined, TemplateError

from svtree.core.models import (
    DirectoryObject,
    FileObject,
    FilesystemObject,
    SymlinkObject,
    TemplateObject,
)
from svtree.utils.diagnostics import ApplyError

logger = logging.getLogger(__name__)


BUILTIN_TEMPLATES: Dict[str, str] = {
    "log-config.j2": (
        "{% if size is not none %}s{{ size }}\n{% endif %}"
        "{% if num is not none %}n{{ num }}\n{% endif %}"
        "{% if min is not none %}N{{ min }}\n{% endif %}"
        "{% if timeout is not none %}t{{ timeout }}\n{% endif %}"
        "{% if processor %}!{{ processor }}\n{% endif %}"
        "{% if socket %}u{{ socket }}\n{% endif %}"
        "{% if prefix %}p{{ prefix }}\n{% endif %}"
        "{% if append %}{{ append }}\n{% endif %}"
    ),
    "init.d.j2": (
        "#!/bin/sh\n"
        "### BEGIN INIT INFO\n"
        "# Provides:          {{ name }}\n"
        "# Required-Start:    $remote_fs $syslog\n"
        "# Required-Stop:     $remote_fs $syslog\n"
        "# Default-Start:     2 3 4 5\n"
        "# Default-Stop:      0 1 6\n"
        "# Short-Description: runit-supervised {{ name }}\n"
        "### END INIT INFO\n"
        "\n"
        "SV={{ sv_bin }}\n"
        "SERVICE={{ service_dir_path }}\n"
        "\n"
        "case \"$1\" in\n"
        "  start|stop|restart|force-reload|status|reload|force-stop|force-restart|force-shutdown|once|up|down)\n"
        "    exec \"$SV\" \"$1\" \"$SERVICE\"\n"
        "    ;;\n"
        "  *)\n"
        "    echo \"Usage: $0 {start|stop|restart|force-reload|status}\" >&2\n"
        "    exit 2\n"
        "    ;;\n"
        "esac\n"
    ),
}


class TemplateRenderer:
    """
    Renders script templates with Jinja2.

    Configured template directories are searched before the built-in templates.
    """
    def __init__(self, template_dirs: Optional[Iterable[Path]] = None):
        loaders = []
        dirs = [str(path) for path in (template_dirs or [])]
        if dirs:
            loaders.append(FileSystemLoader(dirs))
        loaders.append(DictLoader(BUILTIN_TEMPLATES))
        self.env = Environment(
            loader=ChoiceLoader(loaders),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def render(self, template_id: str, variables: Dict[str, Any]) -> bytes:
        template = self.env.get_template(template_id)
        return template.render(**variables).encode("utf-8")


class FilesystemApplier(Protocol):
    def apply(self, descriptor: FilesystemObject) -> bool:
        ...


def _resolve_uid(owner: Optional[str]) -> int:
    if owner is None:
        return -1
    if owner.isdigit():
        return int(owner)
    return pwd.getpwnam(owner).pw_uid


def _resolve_gid(group: Optional[str]) -> int:
    if group is None:
        return -1
    if group.isdigit():
        return int(group)
    return grp.getgrnam(group).gr_gid


class LocalFilesystemApplier:
    """Idempotent applier for directory, file, template and symlink descriptors."""

    def __init__(self, renderer: Optional[TemplateRenderer] = None):
        self.renderer = renderer or TemplateRenderer()

    def apply(self, descriptor: FilesystemObject) -> bool:
        """Converge one object; returns True when on-disk state was altered."""
        try:
            if isinstance(descriptor, DirectoryObject):
                return self._apply_directory(descriptor)
            if isinstance(descriptor, FileObject):
                if descriptor.ensure == "absent":
                    return self._delete_file(descriptor.path)
                return self._apply_content(descriptor, descriptor.content.encode("utf-8"))
            if isinstance(descriptor, TemplateObject):
                content = self.renderer.render(descriptor.template, descriptor.variables)
                return self._apply_content(descriptor, content)
            if isinstance(descriptor, SymlinkObject):
                return self._apply_symlink(descriptor)
        except (OSError, KeyError, TemplateError) as exc:
            raise ApplyError(str(descriptor.path), str(exc)) from exc

        raise ApplyError(str(descriptor.path), f"unsupported descriptor {type(descriptor).__name__}")

    def _apply_directory(self, descriptor: DirectoryObject) -> bool:
        path = descriptor.path
        changed = False
        if not path.is_dir():
            if descriptor.recursive:
                path.mkdir(parents=True, exist_ok=True)
            else:
                path.mkdir()
            logger.debug("Created directory %s", path)
            changed = True
        return self._apply_attributes(descriptor) or changed

    def _apply_content(self, descriptor: FilesystemObject, content: bytes) -> bool:
        path = descriptor.path
        changed = False

        # never write through a link (e.g. an init shim pointing at sv)
        if path.is_symlink():
            path.unlink()
            changed = True

        if changed or not path.is_file() or path.read_bytes() != content:
            fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(content)
                if path.exists():
                    os.chmod(tmp_name, path.stat().st_mode & 0o7777)
                else:
                    os.chmod(tmp_name, 0o644)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
            logger.debug("Wrote %s", path)
            changed = True

        return self._apply_attributes(descriptor) or changed

    def _delete_file(self, path: Path) -> bool:
        if not path.exists() and not path.is_symlink():
            return False
        path.unlink()
        logger.debug("Deleted %s", path)
        return True

    def _apply_symlink(self, descriptor: SymlinkObject) -> bool:
        path = descriptor.path
        target = str(descriptor.target)
        if path.is_symlink():
            if os.readlink(path) == target:
                return False
            path.unlink()
        elif path.exists():
            if path.is_dir():
                raise ApplyError(str(path), "a directory exists where a symlink is expected")
            path.unlink()

        path.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(target, path)
        logger.debug("Linked %s -> %s", path, target)
        return True

    def _apply_attributes(self, descriptor: FilesystemObject) -> bool:
        path = descriptor.path
        changed = False
        stat = path.stat()

        if descriptor.mode is not None and (stat.st_mode & 0o7777) != descriptor.mode:
            os.chmod(path, descriptor.mode)
            changed = True

        uid = _resolve_uid(descriptor.owner)
        gid = _resolve_gid(descriptor.group)
        wants_uid = uid != -1 and stat.st_uid != uid
        wants_gid = gid != -1 and stat.st_gid != gid
        if wants_uid or wants_gid:
            os.chown(path, uid if wants_uid else -1, gid if wants_gid else -1)
            changed = True

        return changed
