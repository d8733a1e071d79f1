from pathlib import Path
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from svtree.core.models import PlatformKind


class FrameworkSettings(BaseSettings):
    """
    Framework-level settings (the 'svtree' section in svtree.yaml).
    """
    model_config = SettingsConfigDict(env_prefix='SVTREE_', extra='ignore')

    log_level: str = "INFO"
    platform: Optional[PlatformKind] = None
    template_dirs: List[Path] = Field(default_factory=list)
    readiness_interval: float = Field(default=1.0, gt=0)
    readiness_timeout: Optional[float] = Field(default=None, gt=0)
    cgroup_path: Path = Path("/proc/1/cgroup")
