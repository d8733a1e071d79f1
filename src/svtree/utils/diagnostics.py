from typing import Optional


class SvtreeError(Exception):
    """Base class for every error raised while converging or controlling a service."""


class ConfigError(SvtreeError):
    """
    Raised when configuration cannot be loaded or a service definition is invalid.
    """


class MissingControlBinary(ConfigError):
    """
    Raised before any filesystem work when the control binary is absent or not executable.
    """
    def __init__(self, sv_bin: str, service_name: Optional[str] = None):
        self.sv_bin = sv_bin
        self.service_name = service_name
        ctx = f" for service '{service_name}'" if service_name else ""
        super().__init__(
            f"Could not locate control binary at \"{sv_bin}\"{ctx}. "
            "Install runit (or point sv_bin at the sv executable) before converging supervised services."
        )


class ApplyError(SvtreeError):
    """
    Raised when a filesystem object could not be applied. Objects applied earlier in
    the same pass are left in place.
    """
    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Failed to apply {path}: {message}")


class ControlInvocationError(SvtreeError):
    """
    Raised when a mutating control-binary call fails.
    """
    def __init__(
        self,
        sv_bin: str,
        subcommand: str,
        target: str,
        returncode: Optional[int] = None,
        stderr: str = "",
        message: Optional[str] = None,
    ):
        self.sv_bin = sv_bin
        self.subcommand = subcommand
        self.target = target
        self.returncode = returncode
        self.stderr = stderr
        detail = message or f"exited with status {returncode}"
        text = f"'{sv_bin} {subcommand} {target}' {detail}"
        if stderr.strip():
            text += f": {stderr.strip()}"
        super().__init__(text)


class ReadinessError(SvtreeError):
    """Base class for readiness-wait failures."""
    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(message)


class ReadinessTimeout(ReadinessError):
    """Raised when a readiness pipe did not appear before the deadline."""


class ReadinessCancelled(ReadinessError):
    """Raised when the caller cancelled a readiness wait."""
