import re
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


_ENV_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class RunState(str, Enum):
    """Verdict of a status probe against the control binary."""

    RUNNING = "running"
    STOPPED = "stopped"


class PlatformKind(str, Enum):
    """
    Platform identity as far as the compatibility shim is concerned.

    DEBIAN lacks native runit init integration and gets a rendered init script;
    every other platform gets a symlink to the control binary.
    """

    DEBIAN = "debian"
    GENERIC = "generic"


class LogConfig(BaseModel):
    """
    Parameters rendered into ``log/config`` for svlogd.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    size: Optional[int] = Field(default=None, ge=0)
    num: Optional[int] = Field(default=None, ge=0)
    min: Optional[int] = Field(default=None, ge=0)
    timeout: Optional[int] = Field(default=None, ge=0)
    processor: Optional[str] = None
    socket: Optional[str] = None
    prefix: Optional[str] = None
    append: Optional[str] = None


class ServiceSpec(BaseModel):
    """
    Declarative description of one supervised service.

    Paths derived from the roots (``sv_dir_path``, ``service_dir_path``) are computed
    on access and never stored.
    """
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    name: str = Field(..., pattern=r"^[A-Za-z0-9][A-Za-z0-9_.@-]{0,127}$")

    # Roots
    sv_dir: Path = Path("/etc/sv")
    service_dir: Path = Path("/etc/service")
    lsb_init_dir: Path = Path("/etc/init.d")
    default_log_root: Path = Path("/var/log")

    owner: Optional[str] = None
    group: Optional[str] = None

    # Control binary
    sv_bin: Path = Path("/usr/bin/sv")
    sv_timeout: Optional[int] = Field(default=None, ge=0)
    sv_verbose: bool = False

    restart_on_update: bool = True
    sv_templates: bool = True

    # Feature flags
    log_enabled: bool = Field(default=True, validation_alias=AliasChoices("log_enabled", "log"))
    default_logger: bool = False
    check_enabled: bool = Field(default=False, validation_alias=AliasChoices("check_enabled", "check"))
    finish_enabled: bool = Field(default=False, validation_alias=AliasChoices("finish_enabled", "finish"))

    env: Dict[str, str] = Field(default_factory=dict)
    control: List[str] = Field(default_factory=list)

    # Template identifiers; each defaults to the service name
    run_template_name: Optional[str] = None
    log_template_name: Optional[str] = None
    check_script_template_name: Optional[str] = None
    finish_script_template_name: Optional[str] = None
    control_template_names: Dict[str, str] = Field(default_factory=dict)

    log_config: LogConfig = Field(default_factory=LogConfig)
    options: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("env")
    @classmethod
    def _check_env_names(cls, value: Dict[str, str]) -> Dict[str, str]:
        for key in value:
            if not _ENV_NAME_PATTERN.fullmatch(key):
                raise ValueError(f"Invalid environment variable name: '{key}'")
        return value

    @field_validator("control")
    @classmethod
    def _dedupe_control(cls, value: List[str]) -> List[str]:
        seen: List[str] = []
        for signal in value:
            if not signal or "/" in signal:
                raise ValueError(f"Invalid control signal name: '{signal}'")
            if signal not in seen:
                seen.append(signal)
        return seen

    @property
    def sv_dir_path(self) -> Path:
        return self.sv_dir / self.name

    @property
    def service_dir_path(self) -> Path:
        return self.service_dir / self.name

    @property
    def lsb_init_path(self) -> Path:
        return self.lsb_init_dir / self.name

    @property
    def default_log_dir_path(self) -> Path:
        return self.default_log_root / self.name

    def template_name(self, kind: str) -> str:
        """Return the configured template identifier for run/log/check/finish, or the service name."""
        configured = {
            "run": self.run_template_name,
            "log": self.log_template_name,
            "check": self.check_script_template_name,
            "finish": self.finish_script_template_name,
        }[kind]
        return configured or self.name

    def control_template_name(self, signal: str) -> str:
        return self.control_template_names.get(signal, self.name)


class CurrentState(BaseModel):
    """
    Snapshot of the live service, rebuilt at the start of each pass.
    """
    model_config = ConfigDict(frozen=True)

    running: bool
    enabled: bool
    env: Dict[str, str] = Field(default_factory=dict)


class FilesystemObject(BaseModel):
    """Common fields for every descriptor produced by the desired-state builder."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: Path
    owner: Optional[str] = None
    group: Optional[str] = None
    mode: Optional[int] = None
    # Marks objects whose change triggers a restart ("run", "log_run", "log_config")
    role: Optional[str] = None


class DirectoryObject(FilesystemObject):
    kind: Literal["directory"] = "directory"
    recursive: bool = False


class FileObject(FilesystemObject):
    kind: Literal["file"] = "file"
    content: str = ""
    ensure: Literal["present", "absent"] = "present"


class TemplateObject(FilesystemObject):
    kind: Literal["template"] = "template"
    template: str
    variables: Dict[str, Any] = Field(default_factory=dict)


class SymlinkObject(FilesystemObject):
    kind: Literal["symlink"] = "symlink"
    target: Path


FilesystemObjectDescriptor = Annotated[
    Union[DirectoryObject, FileObject, TemplateObject, SymlinkObject],
    Field(discriminator="kind"),
]


class ConvergenceResult(BaseModel):
    """Outcome of one convergence pass."""

    any_changed: bool = False
    per_object_changed: Dict[str, bool] = Field(default_factory=dict)
    per_role_changed: Dict[str, bool] = Field(default_factory=dict)

    def role_changed(self, role: str) -> bool:
        return self.per_role_changed.get(role, False)
