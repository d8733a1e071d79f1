from __future__ import annotations

from typing import Any, Dict, List

from svtree.core.models import (
    DirectoryObject,
    FileObject,
    FilesystemObjectDescriptor,
    PlatformKind,
    ServiceSpec,
    SymlinkObject,
    TemplateObject,
)

TEMPLATE_SUFFIX = ".j2"
LOG_CONFIG_TEMPLATE = "log-config.j2"
INIT_SCRIPT_TEMPLATE = "init.d.j2"

SCRIPT_MODE = 0o755
DIR_MODE = 0o755
CONFIG_MODE = 0o644


def default_logger_content(spec: ServiceSpec) -> str:
    return f"#!/bin/sh\nexec svlogd -tt {spec.default_log_dir_path}\n"


def sv_template_id(template_name: str, suffix: str) -> str:
    """Template identifier for a per-service script, e.g. ``sv-myapp-run.j2``."""
    return f"sv-{template_name}-{suffix}{TEMPLATE_SUFFIX}"


def _template_variables(spec: ServiceSpec) -> Dict[str, Any]:
    return {"options": dict(spec.options)}


def build_desired_state(spec: ServiceSpec, platform: PlatformKind) -> List[FilesystemObjectDescriptor]:
    """Return the ordered descriptors converging ``spec``.

    Directories precede the objects they contain. Env variable files are not
    emitted here; see ``svtree.runtime.environment``.
    """
    descriptors: List[FilesystemObjectDescriptor] = []
    sv_path = spec.sv_dir_path
    owned = {"owner": spec.owner, "group": spec.group}

    if spec.sv_templates:
        descriptors.append(DirectoryObject(path=sv_path, mode=DIR_MODE, recursive=True, **owned))
        descriptors.append(
            TemplateObject(
                path=sv_path / "run",
                mode=SCRIPT_MODE,
                template=sv_template_id(spec.template_name("run"), "run"),
                variables=_template_variables(spec),
                role="run",
                **owned,
            )
        )

        if spec.log_enabled:
            descriptors.extend(_log_objects(spec))

        if spec.env:
            descriptors.append(DirectoryObject(path=sv_path / "env", mode=DIR_MODE, **owned))

        if spec.check_enabled:
            descriptors.append(
                TemplateObject(
                    path=sv_path / "check",
                    mode=SCRIPT_MODE,
                    template=sv_template_id(spec.template_name("check"), "check"),
                    variables=_template_variables(spec),
                    **owned,
                )
            )

        if spec.finish_enabled:
            descriptors.append(
                TemplateObject(
                    path=sv_path / "finish",
                    mode=SCRIPT_MODE,
                    template=sv_template_id(spec.template_name("finish"), "finish"),
                    variables=_template_variables(spec),
                    **owned,
                )
            )

        if spec.control:
            descriptors.append(DirectoryObject(path=sv_path / "control", mode=DIR_MODE, **owned))
            for signal in spec.control:
                descriptors.append(
                    TemplateObject(
                        path=sv_path / "control" / signal,
                        mode=SCRIPT_MODE,
                        template=sv_template_id(spec.control_template_name(signal), signal),
                        variables=_template_variables(spec),
                        **owned,
                    )
                )

    descriptors.append(_compatibility_shim(spec, platform))
    return descriptors


def _log_objects(spec: ServiceSpec) -> List[FilesystemObjectDescriptor]:
    log_path = spec.sv_dir_path / "log"
    owned = {"owner": spec.owner, "group": spec.group}
    objects: List[FilesystemObjectDescriptor] = [
        DirectoryObject(path=log_path, mode=DIR_MODE, recursive=True, **owned),
        DirectoryObject(path=log_path / "main", mode=DIR_MODE, recursive=True, **owned),
    ]

    if spec.default_logger:
        objects.append(
            DirectoryObject(path=spec.default_log_dir_path, mode=DIR_MODE, recursive=True, **owned)
        )
        objects.append(
            FileObject(
                path=log_path / "run",
                mode=SCRIPT_MODE,
                content=default_logger_content(spec),
                role="log_run",
                **owned,
            )
        )
    else:
        objects.append(
            TemplateObject(
                path=log_path / "run",
                mode=SCRIPT_MODE,
                template=sv_template_id(spec.template_name("log"), "log-run"),
                variables=_template_variables(spec),
                role="log_run",
                **owned,
            )
        )

    objects.append(
        TemplateObject(
            path=log_path / "config",
            mode=CONFIG_MODE,
            template=LOG_CONFIG_TEMPLATE,
            variables=spec.log_config.model_dump(),
            role="log_config",
            **owned,
        )
    )
    return objects


def _compatibility_shim(spec: ServiceSpec, platform: PlatformKind) -> FilesystemObjectDescriptor:
    if platform == PlatformKind.DEBIAN:
        return TemplateObject(
            path=spec.lsb_init_path,
            owner="root",
            group="root",
            mode=SCRIPT_MODE,
            template=INIT_SCRIPT_TEMPLATE,
            variables={
                "name": spec.name,
                "sv_bin": str(spec.sv_bin),
                "service_dir_path": str(spec.service_dir_path),
            },
        )
    return SymlinkObject(path=spec.lsb_init_path, target=spec.sv_bin)
