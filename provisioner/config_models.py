# provisioner/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for the provisioning manifest.

The manifest is loaded once (defaults, environment variables, YAML file,
environment file and command-line arguments, see config_loader.py) and is
frozen afterwards. Every component receives the same instance and reads from
it; nothing mutates it after load.
"""

import re
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from provisioner import config as static_config

SYMBOLS_DEFAULT: Dict[str, str] = dict(static_config.SYMBOLS)

SQL_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
UNIT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9@._-]*$")


class DatabaseDialect(str, Enum):
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"


class ServiceType(str, Enum):
    ONESHOT = "oneshot"
    SIMPLE = "simple"


class RestartPolicy(str, Enum):
    ALWAYS = "always"
    ON_SUCCESS = "on-success"
    NO = "no"


class DatabaseSettings(BaseModel):
    """Database server, credential and scope settings."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    dialect: DatabaseDialect = Field(
        default=DatabaseDialect.MYSQL, description="Database server flavour."
    )
    host: str = Field(default="localhost", description="Database host.")
    port: Optional[int] = Field(
        default=None,
        description="Database port. Defaults to 3306 (mysql) or 5432 (postgresql).",
    )
    database: str = Field(default="app", description="Database name.")
    user: str = Field(default="app", description="Application database user.")
    password: str = Field(
        default="changeMe", description="Application user password.", repr=False
    )
    service_name: Optional[str] = Field(
        default=None,
        description="systemd unit of the database server. Defaults to the dialect name.",
    )

    @field_validator("database", "user")
    @classmethod
    def _validate_identifier(cls, value: str) -> str:
        if not SQL_IDENTIFIER_PATTERN.match(value):
            raise ValueError(
                f"'{value}' is not a plain SQL identifier (letters, digits, underscore)."
            )
        return value

    @property
    def effective_port(self) -> int:
        if self.port is not None:
            return self.port
        return 5432 if self.dialect == DatabaseDialect.POSTGRESQL else 3306

    @property
    def effective_service_name(self) -> str:
        return self.service_name or self.dialect.value

    @property
    def url(self) -> str:
        scheme = "postgresql" if self.dialect == DatabaseDialect.POSTGRESQL else "mysql"
        return (
            f"{scheme}://{quote(self.user, safe='')}:{quote(self.password, safe='')}"
            f"@{self.host}:"
            f"{self.effective_port}/{self.database}"
        )


class ServiceSettings(BaseModel):
    """A long-running (or one-shot) process a project wants supervised."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(description="systemd unit name, without the .service suffix.")
    description: str = Field(default="", description="Unit description.")
    command: str = Field(description="Command run inside the project directory.")
    type: ServiceType = Field(default=ServiceType.SIMPLE)
    restart: Optional[RestartPolicy] = Field(
        default=None,
        description="Restart policy. Defaults to 'always' for simple units and 'no' for oneshot.",
    )
    enabled: bool = Field(default=True, description="Enable the unit at boot.")
    environment: Dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _validate_unit_name(cls, value: str) -> str:
        value = value.removesuffix(".service")
        if not UNIT_NAME_PATTERN.match(value):
            raise ValueError(f"'{value}' is not a valid systemd unit name.")
        return value


class ProjectSettings(BaseModel):
    """One project directory with its manifest and services."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    directory: Path
    manifest_file: str = Field(default="package.json")
    install_command: List[str] = Field(
        default_factory=lambda: list(static_config.DEPENDENCY_INSTALL_COMMAND)
    )
    has_schema: bool = Field(
        default=False, description="Schema migrations run from this project."
    )
    services: List[ServiceSettings] = Field(default_factory=list)

    @property
    def manifest_path(self) -> Path:
        return self.directory / self.manifest_file


class ReadinessSettings(BaseModel):
    """Where and how long to wait for the deployed application."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3000, gt=0, lt=65536)
    interval_seconds: float = Field(default=3.0, gt=0)
    max_attempts: int = Field(default=30, gt=0)


class ProvisioningManifest(BaseSettings):
    """Complete, immutable provisioning configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PROVISION_",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    runtime: str = Field(
        default=static_config.RUNTIME_DEFAULT,
        description="Key read from 'engines' in each project manifest.",
    )
    default_runtime_version: str = Field(
        default=static_config.RUNTIME_VERSION_DEFAULT,
        description="Runtime version used when a manifest has no engines entry.",
    )
    nvm_dir: Optional[Path] = Field(
        default=None, description="nvm installation directory. Defaults to ~/.nvm."
    )
    nvm_install_url: str = Field(default=static_config.NVM_INSTALL_URL)

    packages: List[str] = Field(
        default_factory=lambda: list(static_config.BASE_PACKAGES),
        description="System packages ensured before anything else.",
    )
    projects: List[ProjectSettings] = Field(default_factory=list)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    readiness: ReadinessSettings = Field(default_factory=ReadinessSettings)

    service_user: Optional[str] = Field(
        default=None,
        description="User the services run as. Defaults to the invoking user.",
    )
    systemd_unit_dir: Path = Field(default=static_config.SYSTEMD_UNIT_DIR)

    env_file: Optional[Path] = Field(
        default=None, description="KEY=value file exported to child processes."
    )
    env_file_required: bool = Field(default=True)
    environment: Dict[str, str] = Field(
        default_factory=dict,
        description="Variables read from env_file. Populated by the loader.",
    )

    migration_command: List[str] = Field(
        default_factory=lambda: list(static_config.MIGRATION_DEPLOY_COMMAND)
    )
    migration_status_command: List[str] = Field(
        default_factory=lambda: list(static_config.MIGRATION_STATUS_COMMAND)
    )

    state_file: Path = Field(default=static_config.STATE_FILE_PATH)
    lock_file: Path = Field(default=static_config.LOCK_FILE_PATH)

    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))

    @field_validator("packages")
    @classmethod
    def _strip_packages(cls, value: List[str]) -> List[str]:
        return [p.strip() for p in value if p and p.strip()]

    @model_validator(mode="after")
    def _check_projects(self) -> "ProvisioningManifest":
        names = [p.name for p in self.projects]
        if len(names) != len(set(names)):
            raise ValueError("Project names must be unique.")
        if sum(1 for p in self.projects if p.has_schema) > 1:
            raise ValueError("At most one project may set has_schema.")
        units = [s.name for p in self.projects for s in p.services]
        if len(units) != len(set(units)):
            raise ValueError("Service names must be unique across projects.")
        return self

    @property
    def effective_nvm_dir(self) -> Path:
        return self.nvm_dir or Path.home() / ".nvm"

    @property
    def schema_project(self) -> Optional[ProjectSettings]:
        for project in self.projects:
            if project.has_schema:
                return project
        return None

    @property
    def database_url(self) -> str:
        return self.environment.get("DATABASE_URL") or self.database.url
