"""
Capability probes.

A probe answers "is this tool or service already here?" without changing
the host. A missing tool is a normal False result, never an error.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from common.command_utils import check_package_installed, command_exists
from common.system_utils import systemd_unit_is_active
from provisioner.config_models import ProvisioningManifest


class CapabilityProbe(ABC):
    """Interface used by the installers as their precondition gate."""

    @abstractmethod
    def probe(self, name: str) -> bool:
        """True when the named tool or package is present."""

    @abstractmethod
    def is_service_active(self, name: str) -> bool:
        """True when the named service is running."""


class DebianCapabilityProbe(CapabilityProbe):
    """
    Probe for Debian-based hosts.

    A name counts as present when it is an executable on PATH or an
    installed dpkg package, so both ``curl`` and ``build-essential`` work.
    """

    def __init__(
        self,
        manifest: Optional[ProvisioningManifest] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.manifest = manifest
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    def probe(self, name: str) -> bool:
        if command_exists(name):
            return True
        return check_package_installed(name, self.manifest, self.logger)

    def is_service_active(self, name: str) -> bool:
        return systemd_unit_is_active(name, self.manifest, self.logger)
