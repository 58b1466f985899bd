"""
Service descriptor builder module.

Turns the services declared by each project into ServiceDescriptor objects
and renders them as systemd unit files. Building and rendering have no side
effects; the registrar is what touches the host.
"""

import logging
import os
import shlex
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from common.system_utils import get_invoking_user
from provisioner import config as static_config
from provisioner.base_step import ProvisioningStep
from provisioner.config_models import (
    ProjectSettings,
    ProvisioningManifest,
    RestartPolicy,
    ServiceSettings,
    ServiceType,
)

UNIT_TEMPLATE = """[Unit]
Description={description}
After=network.target

[Service]
Type={type}
ExecStart={exec_start}
User={user}
{environment_lines}
WorkingDirectory={working_directory}
{service_options}
[Install]
WantedBy=multi-user.target
"""


class ServiceDescriptor(BaseModel):
    """Everything the service manager needs to supervise one process."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    command: str
    working_directory: Path
    environment: Dict[str, str] = Field(default_factory=dict)
    restart: RestartPolicy = RestartPolicy.ALWAYS
    type: ServiceType = ServiceType.SIMPLE
    user: str
    enabled: bool = True

    @property
    def unit_file_name(self) -> str:
        return f"{self.name}.service"


def _escape_environment_value(value: str) -> str:
    # Environment= expands % specifiers only
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("%", "%%")


def _escape_unit_value(value: str) -> str:
    # ExecStart also expands $VARS
    return _escape_environment_value(value).replace("$", "$$")


def exec_start(descriptor: ServiceDescriptor) -> str:
    """ExecStart line value: the command run through bash inside the working directory."""
    directory = shlex.quote(str(descriptor.working_directory))
    script = f"cd {directory} && {descriptor.command}"
    return f'/bin/bash -c "{_escape_unit_value(script)}"'


def render(descriptor: ServiceDescriptor) -> str:
    """Render ``descriptor`` as the text of a systemd unit file."""
    environment_lines = "\n".join(
        f'Environment="{_escape_environment_value(f"{key}={value}")}"'
        for key, value in descriptor.environment.items()
    )
    options = []
    if descriptor.restart != RestartPolicy.NO:
        options.append(f"Restart={descriptor.restart.value}")
    if descriptor.type == ServiceType.ONESHOT:
        # keeps is-active true after a successful run
        options.append("RemainAfterExit=yes")
    service_options = "".join(f"{line}\n" for line in options)

    return UNIT_TEMPLATE.format(
        description=descriptor.description,
        type=descriptor.type.value,
        exec_start=exec_start(descriptor),
        user=descriptor.user,
        environment_lines=environment_lines,
        working_directory=descriptor.working_directory,
        service_options=service_options,
    )


class ServiceDescriptorBuilder(ProvisioningStep):
    """Builder for the service descriptors of every configured project."""

    name = "service-descriptors"
    description = "Build service descriptors"

    def __init__(
        self,
        manifest: ProvisioningManifest,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(manifest, logger)

    def service_user(self) -> str:
        return self.manifest.service_user or get_invoking_user()

    def build(
        self,
        project: ProjectSettings,
        service: ServiceSettings,
        bin_dir: Optional[Path] = None,
        user: Optional[str] = None,
    ) -> ServiceDescriptor:
        """
        Build the descriptor of ``service`` declared by ``project``.

        PATH is the runtime bin directory (when known), then the invoking
        PATH, then /usr/local/bin. Service environment entries override the
        defaults.
        """
        path_parts = [str(bin_dir)] if bin_dir else []
        invoking_path = os.environ.get("PATH")
        if invoking_path:
            path_parts.append(invoking_path)
        path_parts.append(static_config.SERVICE_PATH_SUFFIX)

        environment = {"PATH": ":".join(path_parts)}
        environment.update(static_config.SERVICE_ENVIRONMENT_DEFAULT)
        environment.update(service.environment)

        restart = service.restart
        if restart is None:
            restart = (
                RestartPolicy.NO
                if service.type == ServiceType.ONESHOT
                else RestartPolicy.ALWAYS
            )

        return ServiceDescriptor(
            name=service.name,
            description=service.description or f"{project.name} {service.name}",
            command=service.command,
            working_directory=project.directory,
            environment=environment,
            restart=restart,
            type=service.type,
            user=user or self.service_user(),
            enabled=service.enabled,
        )

    def build_all(self, context: Dict[str, Any]) -> List[ServiceDescriptor]:
        """Descriptors for every declared service, in manifest order."""
        bin_dirs = context.get("runtime_bin_dirs") or {}
        user = self.service_user()
        return [
            self.build(project, service, bin_dirs.get(project.name), user)
            for project in self.manifest.projects
            for service in project.services
        ]

    def is_satisfied(self, context: Dict[str, Any]) -> bool:
        return True

    def publish(self, context: Dict[str, Any]) -> None:
        context["descriptors"] = self.build_all(context)

    def run(self, context: Dict[str, Any]) -> List[ServiceDescriptor]:
        descriptors = self.build_all(context)
        for descriptor in descriptors:
            self.log(
                f"{self.symbols.get('info', '')} Service descriptor for {descriptor.unit_file_name} built (user {descriptor.user})."
            )
        context["descriptors"] = descriptors
        return descriptors
