"""
Service registrar module.

Installs the rendered unit files under the systemd unit directory and makes
sure every unit is enabled and running. Each systemctl action runs only when
its query says it is needed.
"""

import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

from common.command_utils import run_elevated_command
from common.system_utils import (
    systemctl,
    systemd_reload,
    systemd_unit_is_active,
    systemd_unit_is_enabled,
)
from provisioner.base_step import ProvisioningStep
from provisioner.components.services.descriptor_builder import (
    ServiceDescriptor,
    ServiceDescriptorBuilder,
    render,
)
from provisioner.config_models import ProvisioningManifest
from provisioner.errors import (
    DaemonReloadError,
    ServiceEnableError,
    ServiceStartError,
    ServiceWriteError,
)


class ServiceRegistrar(ProvisioningStep):
    """
    Registrar for systemd units.

    Per descriptor: write the unit file if its content differs, reload the
    daemon once if any file was written, enable the unit if requested and not
    yet enabled, start it if inactive or restart it if it was running with an
    older unit file. Nothing is retried.
    """

    name = "services"
    description = "Register, enable and start services"

    def __init__(
        self,
        manifest: ProvisioningManifest,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(manifest, logger)
        self.unit_dir = Path(manifest.systemd_unit_dir)

    def unit_path(self, descriptor: ServiceDescriptor) -> Path:
        return self.unit_dir / descriptor.unit_file_name

    def _descriptors(self, context: Dict[str, Any]) -> List[ServiceDescriptor]:
        descriptors = context.get("descriptors")
        if descriptors is None:
            descriptors = ServiceDescriptorBuilder(self.manifest, self.logger).build_all(context)
        return descriptors

    def is_current(self, descriptor: ServiceDescriptor) -> bool:
        """True when the installed unit file has exactly the rendered content."""
        path = self.unit_path(descriptor)
        try:
            return path.read_text(encoding="utf-8") == render(descriptor)
        except OSError:
            return False

    def write_unit(self, descriptor: ServiceDescriptor) -> bool:
        """
        Write the unit file unless it is current. Returns True if written.

        Raises:
            ServiceWriteError: tee failed.
        """
        path = self.unit_path(descriptor)
        if self.is_current(descriptor):
            self.log(f"{self.symbols.get('success', '')} {path} is up to date.")
            return False

        self.log(f"{self.symbols.get('step', '')} Writing systemd service file {path}...")
        try:
            run_elevated_command(
                ["tee", str(path)],
                self.manifest,
                cmd_input=render(descriptor),
                capture_output=True,
                current_logger=self.logger,
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise ServiceWriteError(descriptor.unit_file_name, str(e)) from e
        self.log(f"{self.symbols.get('success', '')} Created/Updated {path}", "success")
        return True

    def reload(self, units: List[str]) -> None:
        """
        Raises:
            DaemonReloadError: daemon-reload failed.
        """
        try:
            systemd_reload(self.manifest, self.logger)
        except (subprocess.CalledProcessError, OSError) as e:
            raise DaemonReloadError(", ".join(units), str(e)) from e

    def enable(self, descriptor: ServiceDescriptor) -> bool:
        """
        Enable the unit at boot if requested and not enabled yet.

        Raises:
            ServiceEnableError: systemctl enable failed.
        """
        unit = descriptor.unit_file_name
        if not descriptor.enabled:
            return False
        if systemd_unit_is_enabled(unit, self.manifest, self.logger):
            self.log(f"{self.symbols.get('info', '')} {unit} is already enabled.")
            return False
        try:
            systemctl("enable", unit, self.manifest, self.logger)
        except (subprocess.CalledProcessError, OSError) as e:
            raise ServiceEnableError(unit, str(e)) from e
        self.log(f"{self.symbols.get('success', '')} {unit} enabled.", "success")
        return True

    def start(self, descriptor: ServiceDescriptor, changed: bool) -> bool:
        """
        Start an inactive unit, or restart an active one whose file changed.

        Raises:
            ServiceStartError: systemctl start or restart failed.
        """
        unit = descriptor.unit_file_name
        if not systemd_unit_is_active(unit, self.manifest, self.logger):
            verb = "start"
        elif changed:
            verb = "restart"
        else:
            self.log(f"{self.symbols.get('success', '')} {unit} is already running.")
            return False

        self.log(f"{self.symbols.get('rocket', '')} Running systemctl {verb} {unit}...")
        try:
            systemctl(verb, unit, self.manifest, self.logger)
        except (subprocess.CalledProcessError, OSError) as e:
            raise ServiceStartError(unit, str(e)) from e
        self.log(f"{self.symbols.get('success', '')} {unit} {verb}ed.", "success")
        return True

    def register(self, descriptors: List[ServiceDescriptor]) -> List[str]:
        """Register every descriptor. Returns the units that were changed in any way."""
        written = [d.unit_file_name for d in descriptors if self.write_unit(d)]
        if written:
            self.reload(written)

        changed_units = []
        for descriptor in descriptors:
            changed = descriptor.unit_file_name in written
            enabled = self.enable(descriptor)
            started = self.start(descriptor, changed)
            if changed or enabled or started:
                changed_units.append(descriptor.unit_file_name)
        return changed_units

    def is_satisfied(self, context: Dict[str, Any]) -> bool:
        for descriptor in self._descriptors(context):
            unit = descriptor.unit_file_name
            if not self.is_current(descriptor):
                return False
            if descriptor.enabled and not systemd_unit_is_enabled(unit, self.manifest, self.logger):
                return False
            if not systemd_unit_is_active(unit, self.manifest, self.logger):
                return False
        return True

    def run(self, context: Dict[str, Any]) -> List[str]:
        descriptors = self._descriptors(context)
        if not descriptors:
            self.log(f"{self.symbols.get('info', '')} No services declared.")
            return []
        return self.register(descriptors)
