import os
import re
import yaml
from pathlib import Path
from typing import Any, Dict, Tuple
from pydantic import ValidationError

from svtree.core.models import ServiceSpec
from svtree.core.settings import FrameworkSettings
from svtree.utils.diagnostics import ConfigError

ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]+))?\}")

def interpolate_env_vars(content: str) -> str:
    """Replace ${VAR} or ${VAR:default} with environment variables."""
    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, content)

def load_config(path: Path) -> Dict[str, Any]:
    """
    Load svtree.yaml with environment variable interpolation.

    Keeps only the keys: svtree, defaults, services.
    """
    if not path.exists():
        return {}

    try:
        content = path.read_text()
        interpolated_content = interpolate_env_vars(content)
        full_config = yaml.safe_load(interpolated_content) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Could not read configuration file {path}: {exc}") from exc

    if not isinstance(full_config, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping at the top level.")

    allowed_keys = {"svtree", "defaults", "services"}
    filtered_config = {k: v for k, v in full_config.items() if k in allowed_keys}

    return filtered_config

def build_settings(config: Dict[str, Any]) -> FrameworkSettings:
    """Build framework settings from the 'svtree' section."""
    try:
        return FrameworkSettings(**(config.get("svtree") or {}))
    except ValidationError as exc:
        raise ConfigError(f"Invalid 'svtree' settings: {exc}") from exc

def build_service_specs(config: Dict[str, Any]) -> Dict[str, ServiceSpec]:
    """
    Validate every entry of 'services' into a ServiceSpec.

    Entries may be a list of mappings with a 'name' key or a mapping keyed by name.
    The 'defaults' section is merged underneath each entry.
    """
    defaults = config.get("defaults") or {}
    raw_services = config.get("services") or []

    if isinstance(raw_services, dict):
        entries = [{"name": name, **(body or {})} for name, body in raw_services.items()]
    elif isinstance(raw_services, list):
        entries = list(raw_services)
    else:
        raise ConfigError("'services' must be a list or a mapping.")

    specs: Dict[str, ServiceSpec] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            raise ConfigError(f"Service entry must be a mapping, got: {entry!r}")
        merged = {**defaults, **entry}
        try:
            spec = ServiceSpec.model_validate(merged)
        except ValidationError as exc:
            raise ConfigError(f"Invalid service '{entry.get('name', '?')}': {exc}") from exc
        if spec.name in specs:
            raise ConfigError(f"Service '{spec.name}' is defined more than once.")
        specs[spec.name] = spec

    return specs

def load_services(path: Path) -> Tuple[FrameworkSettings, Dict[str, ServiceSpec]]:
    config = load_config(path)
    return build_settings(config), build_service_specs(config)
