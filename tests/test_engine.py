import pytest
from pathlib import Path

from conftest import RecordingApplier
from svtree.core.models import DirectoryObject, FileObject, PlatformKind, TemplateObject
from svtree.runtime.appliers import LocalFilesystemApplier, TemplateRenderer
from svtree.runtime.desired import build_desired_state
from svtree.runtime.engine import ConvergenceEngine
from svtree.runtime.environment import read_current_env, reconcile_env
from svtree.utils.diagnostics import ApplyError


def _converge(spec, applier):
    engine = ConvergenceEngine(applier)
    env_dir = spec.sv_dir_path / "env"
    plan = reconcile_env(spec.env, read_current_env(env_dir))
    return engine.apply(build_desired_state(spec, PlatformKind.GENERIC), plan.to_descriptors(env_dir))


def test_second_pass_reports_no_change(service_spec, template_dir):
    spec = service_spec.model_copy(update={"env": {"PORT": "8080"}, "control": ["t"]})
    applier = LocalFilesystemApplier(TemplateRenderer([template_dir]))

    first = _converge(spec, applier)
    second = _converge(spec, applier)

    assert first.any_changed is True
    assert first.role_changed("run") is True
    assert second.any_changed is False
    assert not any(second.per_object_changed.values())
    assert (spec.sv_dir_path / "env" / "PORT").read_text() == "8080"
    assert (spec.sv_dir_path / "control" / "t").exists()


def test_env_files_applied_after_env_directory():
    applier = RecordingApplier(changed=False)
    engine = ConvergenceEngine(applier)
    descriptors = [
        DirectoryObject(path=Path("/sv/web")),
        DirectoryObject(path=Path("/sv/web/env")),
        TemplateObject(path=Path("/sv/web/check"), template="sv-web-check.j2"),
    ]
    env_objects = [FileObject(path=Path("/sv/web/env/A"), content="1")]

    engine.apply(descriptors, env_objects)

    assert [d.path for d in applier.applied] == [
        Path("/sv/web"),
        Path("/sv/web/env"),
        Path("/sv/web/env/A"),
        Path("/sv/web/check"),
    ]


def test_env_deletes_apply_without_env_directory():
    applier = RecordingApplier(changed_paths=["/sv/web/env/OLD"])
    engine = ConvergenceEngine(applier)

    result = engine.apply(
        [DirectoryObject(path=Path("/sv/web"))],
        [FileObject(path=Path("/sv/web/env/OLD"), ensure="absent")],
    )

    assert result.any_changed is True
    assert result.per_object_changed == {"/sv/web": False, "/sv/web/env/OLD": True}


def test_role_changes_are_tracked():
    applier = RecordingApplier(changed_paths=["/sv/web/log/config"])
    engine = ConvergenceEngine(applier)

    result = engine.apply(
        [
            TemplateObject(path=Path("/sv/web/run"), template="a", role="run"),
            TemplateObject(path=Path("/sv/web/log/config"), template="b", role="log_config"),
        ]
    )

    assert result.role_changed("run") is False
    assert result.role_changed("log_config") is True


def test_apply_failure_stops_the_pass(service_spec):
    applier = LocalFilesystemApplier(TemplateRenderer([]))

    with pytest.raises(ApplyError):
        _converge(service_spec, applier)

    # directory before the missing run template was already applied
    assert service_spec.sv_dir_path.is_dir()
    assert not (service_spec.sv_dir_path / "log").exists()
