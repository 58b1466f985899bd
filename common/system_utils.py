# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level utility functions.

This module wraps the systemd queries and commands the provisioner needs and
determines the identity of the invoking user.
"""

import getpass
import logging
import os
import subprocess
from typing import Optional

from common.command_utils import get_symbols, log_step, run_command, run_elevated_command
from provisioner.config_models import ProvisioningManifest

module_logger = logging.getLogger(__name__)


def get_invoking_user() -> str:
    """
    Returns the login of the user who started the provisioner.

    Under sudo this is the original user (SUDO_USER), not root.
    """
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user and sudo_user != "root":
        return sudo_user
    return getpass.getuser()


def _systemctl_query(
    verb: str,
    unit: str,
    manifest: Optional[ProvisioningManifest],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    logger_to_use = current_logger if current_logger else module_logger
    try:
        result = run_command(
            ["systemctl", verb, "--quiet", unit],
            manifest,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
        )
        return result.returncode == 0
    except (OSError, subprocess.SubprocessError) as e:
        symbols = get_symbols(manifest)
        log_step(
            f"{symbols.get('warning', '!')} Could not query systemd ({verb}) for '{unit}': {e}",
            "warning",
            logger_to_use,
            manifest,
        )
        return False


def systemd_unit_is_active(
    unit: str,
    manifest: Optional[ProvisioningManifest],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """True when ``systemctl is-active`` reports the unit active. Never raises."""
    return _systemctl_query("is-active", unit, manifest, current_logger)


def systemd_unit_is_enabled(
    unit: str,
    manifest: Optional[ProvisioningManifest],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """True when ``systemctl is-enabled`` reports the unit enabled. Never raises."""
    return _systemctl_query("is-enabled", unit, manifest, current_logger)


def systemd_reload(
    manifest: Optional[ProvisioningManifest],
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Reload the systemd daemon.

    Raises:
        subprocess.CalledProcessError: daemon-reload returned non-zero.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(manifest)
    log_step(
        f"{symbols.get('gear', '⚙️')} Reloading systemd daemon to pick up the new service files...",
        "info",
        logger_to_use,
        manifest,
    )
    run_elevated_command(
        ["systemctl", "daemon-reload"],
        manifest,
        current_logger=logger_to_use,
    )
    log_step(
        f"{symbols.get('success', '✅')} Systemd daemon reloaded.",
        "success",
        logger_to_use,
        manifest,
    )


def systemctl(
    verb: str,
    unit: str,
    manifest: Optional[ProvisioningManifest],
    current_logger: Optional[logging.Logger] = None,
) -> subprocess.CompletedProcess:
    """
    Runs ``systemctl <verb> <unit>`` with elevated privileges.

    Raises:
        subprocess.CalledProcessError: systemctl returned non-zero.
    """
    return run_elevated_command(
        ["systemctl", verb, unit],
        manifest,
        capture_output=True,
        current_logger=current_logger if current_logger else module_logger,
    )
