"""
Project dependency installer module.

Runs each project's dependency installation command (``npm install`` by
default) inside the project directory, under the runtime version resolved
for that project.
"""

import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from common.command_utils import build_command_env, run_command
from provisioner.base_step import ProvisioningStep
from provisioner.components.runtime.runtime_version_resolver import (
    RuntimeVersionResolver,
)
from provisioner.config_models import ProjectSettings, ProvisioningManifest
from provisioner.errors import (
    DependencyInstallError,
    DirectoryNotFoundError,
    VersionResolutionError,
)

# npm writes this after every successful install
INSTALL_MARKER = Path("node_modules") / ".package-lock.json"
INSTALL_INPUTS = ("package.json", "package-lock.json")


class DependencyInstaller(ProvisioningStep):
    """Installer for per-project dependencies."""

    name = "dependencies"
    description = "Install project dependencies"

    def __init__(
        self,
        manifest: ProvisioningManifest,
        runtime: Optional[RuntimeVersionResolver] = None,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(manifest, logger)
        self.runtime = runtime

    def is_up_to_date(self, project_dir: Union[str, Path]) -> bool:
        """
        True when the install marker exists and is newer than every install
        input (package.json, package-lock.json) present in the directory.
        """
        project_dir = Path(project_dir)
        marker = project_dir / INSTALL_MARKER
        if not marker.is_file():
            return False
        marker_mtime = marker.stat().st_mtime
        for name in INSTALL_INPUTS:
            source = project_dir / name
            if source.is_file() and source.stat().st_mtime > marker_mtime:
                return False
        return True

    def install(
        self,
        project_dir: Union[str, Path],
        command: Optional[List[str]] = None,
        version: Optional[str] = None,
    ) -> bool:
        """
        Install the dependencies of the project in ``project_dir``.

        Returns:
            True if the install command ran, False if dependencies were up to date.

        Raises:
            DirectoryNotFoundError: ``project_dir`` does not exist.
            DependencyInstallError: The install command failed.
        """
        project_dir = Path(project_dir)
        if not project_dir.is_dir():
            self.log(
                f"{self.symbols.get('error', '')} Error: Directory {project_dir} not found.",
                "error",
            )
            raise DirectoryNotFoundError(project_dir)

        if self.is_up_to_date(project_dir):
            self.log(f"{self.symbols.get('success', '')} Dependencies in {project_dir} are up to date.")
            return False

        command = list(command or ["npm", "install"])
        if self.runtime is not None:
            command = self.runtime.wrap(version, command)

        self.log(f"{self.symbols.get('package', '')} Installing dependencies in {project_dir}...")
        try:
            run_command(
                command,
                self.manifest,
                cwd=str(project_dir),
                current_logger=self.logger,
                env=build_command_env(self.manifest),
            )
        except (subprocess.CalledProcessError, OSError) as e:
            self.log(
                f"{self.symbols.get('error', '')} Error: Failed to install dependencies in {project_dir}.",
                "error",
            )
            raise DependencyInstallError(project_dir, str(e)) from e

        self.log(f"{self.symbols.get('success', '')} Dependencies installed in {project_dir}.", "success")
        return True

    def install_project(
        self, project: ProjectSettings, version: Optional[str] = None
    ) -> bool:
        return self.install(project.directory, project.install_command, version)

    def is_satisfied(self, context: Dict[str, Any]) -> bool:
        return all(
            p.directory.is_dir() and self.is_up_to_date(p.directory)
            for p in self.manifest.projects
        )

    def run(self, context: Dict[str, Any]) -> List[str]:
        """Install every project's dependencies. Needs resolved runtime versions."""
        versions = context.get("runtime_versions")
        if versions is None:
            raise VersionResolutionError(
                "Runtime versions must be resolved before installing dependencies."
            )
        installed = []
        for project in self.manifest.projects:
            if self.install_project(project, versions.get(project.name)):
                installed.append(project.name)
        return installed
