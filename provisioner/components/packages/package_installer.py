"""
System package installer module.

Ensures the system packages named in the manifest are present, installing
the missing ones with apt.
"""

import logging
import subprocess
from typing import Any, Dict, List, Optional

from common.command_utils import run_elevated_command
from provisioner.base_step import ProvisioningStep
from provisioner.components.capability.probe import CapabilityProbe
from provisioner.config_models import ProvisioningManifest
from provisioner.errors import PackageInstallError


class PackageInstaller(ProvisioningStep):
    """
    Installer for system packages.

    Each package is gated by the capability probe; apt is only touched for
    packages the probe reports missing. The package lists are refreshed once
    per run, right before the first install.
    """

    name = "packages"
    description = "Install required system packages"

    def __init__(
        self,
        manifest: ProvisioningManifest,
        probe: CapabilityProbe,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(manifest, logger)
        self.probe = probe
        self._lists_updated = False

    def is_satisfied(self, context: Dict[str, Any]) -> bool:
        return all(self.probe.probe(p) for p in self.manifest.packages)

    def run(self, context: Dict[str, Any]) -> List[str]:
        """Ensure every manifest package. Returns the packages installed now."""
        installed = [p for p in self.manifest.packages if self.ensure(p)]
        context["installed_packages"] = installed
        return installed

    def ensure(self, package: str) -> bool:
        """
        Install ``package`` unless the probe finds it.

        Returns:
            True if the package was installed by this call, False if it was
            already present.

        Raises:
            PackageInstallError: apt-get update or install failed.
        """
        if self.probe.probe(package):
            self.log(f"{self.symbols.get('success', '')} {package} is already installed.")
            return False

        self.log(
            f"{self.symbols.get('package', '')} {package} is not installed. Installing {package}..."
        )
        try:
            if not self._lists_updated:
                run_elevated_command(
                    ["apt-get", "update", "-yq"],
                    self.manifest,
                    current_logger=self.logger,
                )
                self._lists_updated = True
            run_elevated_command(
                ["apt-get", "install", "-yq", package],
                self.manifest,
                current_logger=self.logger,
            )
        except (subprocess.CalledProcessError, OSError) as e:
            self.log(
                f"{self.symbols.get('error', '')} Error: Failed to install {package}.",
                "error",
            )
            raise PackageInstallError(package, str(e)) from e

        self.log(f"{self.symbols.get('success', '')} {package} installed successfully.", "success")
        return True
