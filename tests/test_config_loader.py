import pytest
from pathlib import Path

from svtree.config.loader import build_service_specs, build_settings, load_config, load_services
from svtree.core.models import PlatformKind
from svtree.utils.diagnostics import ConfigError

def test_load_config_no_file(tmp_path):
    config = load_config(tmp_path / "nonexistent.yaml")
    assert config == {}

def test_load_config_basic(tmp_path):
    config_file = tmp_path / "svtree.yaml"
    config_file.write_text("""
svtree:
  log_level: DEBUG
defaults:
  sv_dir: /srv/sv
services:
  - name: web
    env:
      PORT: "8080"
""")

    config = load_config(config_file)
    assert config["svtree"]["log_level"] == "DEBUG"
    assert config["defaults"]["sv_dir"] == "/srv/sv"
    assert config["services"][0]["env"]["PORT"] == "8080"

def test_load_config_interpolation(tmp_path, monkeypatch):
    monkeypatch.setenv("WEB_PORT", "9090")

    config_file = tmp_path / "svtree.yaml"
    config_file.write_text("""
services:
  - name: web
    sv_bin: "${SV_BIN:/usr/local/bin/sv}"
    env:
      PORT: "${WEB_PORT}"
      MISSING: "${MISSING_VAR}"
""")

    config = load_config(config_file)
    service = config["services"][0]
    assert service["sv_bin"] == "/usr/local/bin/sv"
    assert service["env"]["PORT"] == "9090"
    assert service["env"]["MISSING"] == ""

def test_load_config_filters_unknown_keys(tmp_path):
    config_file = tmp_path / "svtree.yaml"
    config_file.write_text("""
unknown_key: true
services: []
""")

    config = load_config(config_file)
    assert "unknown_key" not in config
    assert "services" in config

def test_load_config_invalid_yaml_raises(tmp_path):
    config_file = tmp_path / "svtree.yaml"
    config_file.write_text("services: [unclosed\n")

    with pytest.raises(ConfigError, match="svtree.yaml"):
        load_config(config_file)

def test_build_service_specs_merges_defaults():
    specs = build_service_specs({
        "defaults": {"sv_dir": "/srv/sv", "log": False, "sv_timeout": 5},
        "services": [
            {"name": "web"},
            {"name": "worker", "log": True, "control": ["t"]},
        ],
    })

    assert specs["web"].sv_dir_path == Path("/srv/sv/web")
    assert specs["web"].log_enabled is False
    assert specs["worker"].log_enabled is True
    assert specs["worker"].sv_timeout == 5
    assert specs["worker"].control == ["t"]

def test_build_service_specs_accepts_mapping():
    specs = build_service_specs({"services": {"web": {"check": True}, "db": None}})

    assert sorted(specs) == ["db", "web"]
    assert specs["web"].check_enabled is True

def test_build_service_specs_rejects_duplicates():
    with pytest.raises(ConfigError, match="more than once"):
        build_service_specs({"services": [{"name": "web"}, {"name": "web"}]})

def test_build_service_specs_wraps_validation_errors():
    with pytest.raises(ConfigError, match="Invalid service 'web'"):
        build_service_specs({"services": [{"name": "web", "sv_timeout": -1}]})

def test_build_settings_reads_section_and_environment(monkeypatch):
    monkeypatch.setenv("SVTREE_READINESS_INTERVAL", "0.25")

    settings = build_settings({"svtree": {"platform": "debian", "template_dirs": ["/etc/svtree/templates"]}})

    assert settings.platform == PlatformKind.DEBIAN
    assert settings.template_dirs == [Path("/etc/svtree/templates")]
    assert settings.readiness_interval == 0.25
    assert settings.readiness_timeout is None

def test_load_services_roundtrip(tmp_path):
    config_file = tmp_path / "svtree.yaml"
    config_file.write_text("""
svtree:
  readiness_timeout: 30
services:
  - name: web
""")

    settings, specs = load_services(config_file)
    assert settings.readiness_timeout == 30
    assert list(specs) == ["web"]
