# provisioner/errors.py
# -*- coding: utf-8 -*-
"""
Typed failures raised by provisioning steps.

Every failure is fatal to the run. Components raise one of these, the
orchestrator stops at the first one and the CLI turns it into exit status 1.
"""

from pathlib import Path
from typing import Optional, Union


class ProvisioningError(Exception):
    """Base class for every fatal provisioning failure."""

    step: str = "provisioning"

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        if step:
            self.step = step


class ConfigurationError(ProvisioningError):
    step = "configuration"


class EnvironmentFileError(ConfigurationError):
    step = "environment"

    def __init__(self, path: Union[str, Path], reason: str = "not found"):
        self.path = Path(path)
        super().__init__(f"Environment file {self.path} {reason}.")


class ConcurrentRunError(ProvisioningError):
    step = "run-lock"


class PackageInstallError(ProvisioningError):
    step = "packages"

    def __init__(self, package: str, reason: str = ""):
        self.package = package
        detail = f": {reason}" if reason else "."
        super().__init__(f"Failed to install package '{package}'{detail}")


class VersionResolutionError(ProvisioningError):
    step = "runtime"


class DirectoryNotFoundError(ProvisioningError):
    step = "dependencies"

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        super().__init__(f"Directory {self.directory} not found.")


class DependencyInstallError(ProvisioningError):
    step = "dependencies"

    def __init__(self, directory: Union[str, Path], reason: str = ""):
        self.directory = Path(directory)
        detail = f": {reason}" if reason else "."
        super().__init__(
            f"Failed to install dependencies in {self.directory}{detail}"
        )


class DatabaseStartError(ProvisioningError):
    step = "database"


class DatabaseCreationError(ProvisioningError):
    step = "database"


class UserCreationError(ProvisioningError):
    step = "database"


class PrivilegeGrantError(ProvisioningError):
    step = "database"


class MigrationError(ProvisioningError):
    step = "migrations"


class ServiceRegistrationError(ProvisioningError):
    step = "services"
    action = "Service registration"

    def __init__(self, unit: str, reason: str = ""):
        self.unit = unit
        detail = f": {reason}" if reason else "."
        super().__init__(f"{self.action} failed for {unit}{detail}")


class ServiceWriteError(ServiceRegistrationError):
    action = "Writing unit file"


class DaemonReloadError(ServiceRegistrationError):
    action = "systemd daemon-reload"


class ServiceEnableError(ServiceRegistrationError):
    action = "Enabling unit"


class ServiceStartError(ServiceRegistrationError):
    action = "Starting unit"


class ReadinessTimeoutError(ProvisioningError):
    step = "readiness"

    def __init__(self, port: int, total_wait_seconds: float, host: str = ""):
        self.port = port
        self.host = host
        self.total_wait_seconds = total_wait_seconds
        where = f"{host}:{port}" if host else f"port {port}"
        super().__init__(
            f"Application is not available on {where} after "
            f"{total_wait_seconds:g} seconds."
        )
