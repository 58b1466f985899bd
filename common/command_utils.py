# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for running host commands and logging their output.
"""

import logging
import os
import shutil
import subprocess
from typing import Dict, List, Mapping, Optional, Sequence

from provisioner.config_models import SYMBOLS_DEFAULT, ProvisioningManifest

module_logger = logging.getLogger(__name__)

REDACTED = "****"


def get_symbols(manifest: Optional[ProvisioningManifest]) -> Dict[str, str]:
    """Return the logging symbols of the manifest, or the defaults."""
    if manifest is not None and manifest.symbols:
        return manifest.symbols
    return SYMBOLS_DEFAULT


def log_step(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    manifest: Optional[ProvisioningManifest] = None,
    exc_info: bool = False,
) -> None:
    """
    Logs a provisioning message at the given level.

    Args:
        message (str): The log message to be recorded.
        level (str): "debug", "info", "success", "warning", "error" or
            "critical". "success" is logged at INFO.
        current_logger (Optional[logging.Logger]): Logger to use. Defaults to
            the module logger.
        manifest (Optional[ProvisioningManifest]): Accepted so every call site
            can pass its manifest; not used for level selection.
        exc_info (bool): Attach exception information to the record.
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)


def _get_elevated_command_prefix() -> List[str]:
    """
    Returns ["sudo"] when the process is not running as root, otherwise an
    empty list.
    """
    return [] if os.geteuid() == 0 else ["sudo"]


def _redact(text: str, secrets: Sequence[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text


def build_command_env(
    manifest: Optional[ProvisioningManifest],
    extra: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Builds the environment for a child process.

    The current process environment is copied, then the variables read from
    the manifest's environment file and finally ``extra`` are layered on top.
    ``os.environ`` itself is never modified.
    """
    env = dict(os.environ)
    if manifest is not None:
        env.update(manifest.environment)
    if extra:
        env.update(extra)
    return env


def run_command(
    command: List[str],
    manifest: Optional[ProvisioningManifest],
    check: bool = True,
    capture_output: bool = False,
    text: bool = True,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    secrets: Sequence[str] = (),
) -> subprocess.CompletedProcess:
    """
    Executes a system command and logs the invocation and its output.

    Args:
        command: The command to execute, as an argument list.
        manifest: Provisioning manifest, used for logging symbols.
        check: Raise ``CalledProcessError`` on a non-zero exit code.
        capture_output: Capture stdout and stderr.
        text: Decode output streams as text.
        cmd_input: Data written to the command's stdin.
        current_logger: Logger to use. Defaults to the module logger.
        cwd: Working directory for the command.
        env: Full environment for the command. Inherited when None.
        secrets: Strings replaced by ``****`` wherever the command or its
            output is logged.

    Returns:
        subprocess.CompletedProcess: The finished process.

    Raises:
        subprocess.CalledProcessError: Non-zero exit with ``check=True``.
        FileNotFoundError: The executable does not exist.
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = get_symbols(manifest)
    command_to_log_str = _redact(subprocess.list2cmdline(command), secrets)
    log_step(
        f"{symbols.get('gear', '⚙️')} Executing: {command_to_log_str} {f'(in {cwd})' if cwd else ''}".rstrip(),
        "info",
        effective_logger,
        manifest,
    )
    try:
        result = subprocess.run(
            command,
            check=check,
            capture_output=capture_output,
            text=text,
            input=cmd_input,
            cwd=cwd,
            env=env,
        )
        if capture_output:
            if result.stdout and result.stdout.strip():
                log_step(
                    f"   stdout: {_redact(result.stdout.strip(), secrets)}",
                    "debug",
                    effective_logger,
                    manifest,
                )
            if result.stderr and result.stderr.strip():
                log_step(
                    f"   stderr: {_redact(result.stderr.strip(), secrets)}",
                    "debug",
                    effective_logger,
                    manifest,
                )
        return result
    except subprocess.CalledProcessError as e:
        log_step(
            f"{symbols.get('error', '❌')} Command `{command_to_log_str}` failed (rc {e.returncode}).",
            "error",
            effective_logger,
            manifest,
        )
        if e.stdout and hasattr(e.stdout, "strip") and e.stdout.strip():
            log_step(
                f"   stdout: {_redact(e.stdout.strip(), secrets)}",
                "error",
                effective_logger,
                manifest,
            )
        if e.stderr and hasattr(e.stderr, "strip") and e.stderr.strip():
            log_step(
                f"   stderr: {_redact(e.stderr.strip(), secrets)}",
                "error",
                effective_logger,
                manifest,
            )
        raise
    except FileNotFoundError as e:
        log_step(
            f"{symbols.get('error', '❌')} Command not found: {e.filename}. Ensure it's installed and in PATH.",
            "error",
            effective_logger,
            manifest,
        )
        raise


def run_elevated_command(
    command: List[str],
    manifest: Optional[ProvisioningManifest],
    check: bool = True,
    capture_output: bool = False,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    secrets: Sequence[str] = (),
) -> subprocess.CompletedProcess:
    """
    Executes a command with root privileges, prefixing ``sudo`` when the
    process is not already root. Arguments are as for :func:`run_command`.
    """
    prefix = _get_elevated_command_prefix()
    return run_command(
        prefix + list(command),
        manifest,
        check=check,
        capture_output=capture_output,
        text=True,
        cmd_input=cmd_input,
        current_logger=current_logger,
        cwd=cwd,
        env=env,
        secrets=secrets,
    )


def command_exists(command_name: str) -> bool:
    """Check if an executable named ``command_name`` is on PATH."""
    return shutil.which(command_name) is not None


def check_package_installed(
    package_name: str,
    manifest: Optional[ProvisioningManifest],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Checks with ``dpkg-query`` whether a Debian package is installed.

    Returns False, never raises, when dpkg-query is missing or fails.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(manifest)
    try:
        result = run_command(
            ["dpkg-query", "-W", "-f=${Status}", package_name],
            manifest,
            check=False,
            capture_output=True,
            text=True,
            current_logger=logger_to_use,
        )
        return (
            result.returncode == 0 and "install ok installed" in result.stdout
        )
    except FileNotFoundError:
        log_step(
            f"{symbols.get('warning', '!')} dpkg-query command not found. Cannot check package '{package_name}'.",
            "warning",
            logger_to_use,
            manifest,
        )
        return False
    except (OSError, subprocess.SubprocessError) as e:
        log_step(
            f"{symbols.get('warning', '!')} Error checking if package '{package_name}' is installed: {e}",
            "warning",
            logger_to_use,
            manifest,
        )
        return False
