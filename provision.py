#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Entry point for the application provisioner.
"""

import argparse
import logging
import sys
from typing import List, Optional

from common.command_utils import get_symbols
from common.logging_config import setup_logging
from common.run_lock import RunLock
from provisioner import config as static_config
from provisioner.config_loader import DEFAULT_CONFIG_FILE, load_manifest
from provisioner.config_models import DatabaseDialect, ProvisioningManifest
from provisioner.errors import ConcurrentRunError, ProvisioningError
from provisioner.orchestrator import STEP_NAMES, ProvisioningOrchestrator
from provisioner.state_ledger import StateLedger


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description=f"{static_config.BANNER_TITLE} v{static_config.SCRIPT_VERSION}"
    )

    # -v may appear before or after the subcommand
    all_args = args if args is not None else sys.argv[1:]
    global_parser = argparse.ArgumentParser(add_help=False)
    global_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    global_args, remaining_args = global_parser.parse_known_args(all_args)

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help=f"YAML configuration file (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument("--log-file", default=None, help="Also append log lines to this file")

    overrides = parser.add_argument_group("configuration overrides")
    overrides.add_argument(
        "--db-dialect",
        choices=[d.value for d in DatabaseDialect],
        default=None,
        help="Database server flavour",
    )
    overrides.add_argument("--db-host", default=None, help="Database host")
    overrides.add_argument("--db-port", type=int, default=None, help="Database port")
    overrides.add_argument("--db-name", default=None, help="Database name")
    overrides.add_argument("--db-user", default=None, help="Application database user")
    overrides.add_argument("--db-password", default=None, help="Application database password")
    overrides.add_argument("--service-user", default=None, help="User the services run as")
    overrides.add_argument("--env-file", default=None, help="Environment file exported to child processes")
    overrides.add_argument("--readiness-port", type=int, default=None, help="Port polled at the end of the run")
    overrides.add_argument("--readiness-interval", type=float, default=None, help="Seconds between readiness polls")
    overrides.add_argument("--readiness-attempts", type=int, default=None, help="Maximum readiness polls")
    overrides.add_argument(
        "--default-runtime-version",
        default=None,
        help="Runtime version used when a project manifest has no engines entry",
    )

    subparsers = parser.add_subparsers(
        dest="command", help="Command to execute", required=True
    )

    run_parser = subparsers.add_parser("run", help="Run the full provisioning pipeline")
    run_parser.add_argument(
        "--resume",
        action="store_true",
        help="Skip steps recorded as completed by an earlier run with the same configuration",
    )
    run_parser.add_argument(
        "--no-lock",
        action="store_true",
        help="Do not take the run lock",
    )
    subparsers.add_parser(
        "status", help="Report which steps have nothing left to do, without changing anything"
    )
    subparsers.add_parser("render", help="Print the systemd unit files that would be installed")
    subparsers.add_parser("list", help="List the pipeline steps in order")

    parsed_args = parser.parse_args(remaining_args)
    if global_args.verbose:
        parsed_args.verbose = True
    return parsed_args


def print_banner(manifest: ProvisioningManifest, logger: logging.Logger) -> None:
    symbols = get_symbols(manifest)
    logger.info(
        f"{symbols.get('rocket', '')}====== {static_config.BANNER_TITLE} v{static_config.SCRIPT_VERSION} ======"
    )
    projects = ", ".join(p.name for p in manifest.projects) or "none"
    logger.info(f"Projects: {projects}")
    logger.info(
        f"Database: {manifest.database.dialect.value} '{manifest.database.database}' "
        f"on {manifest.database.host}:{manifest.database.effective_port}"
    )


def _run(
    manifest: ProvisioningManifest,
    parsed_args: argparse.Namespace,
    logger: logging.Logger,
) -> int:
    symbols = get_symbols(manifest)
    print_banner(manifest, logger)

    lock = RunLock(manifest.lock_file, logger)
    if not parsed_args.no_lock and not lock.acquire():
        raise ConcurrentRunError(
            f"Another provisioning run holds {manifest.lock_file} "
            f"(PID {lock.owner_pid() or 'unknown'})."
        )
    with lock:
        orchestrator = ProvisioningOrchestrator(
            manifest, logger=logger, ledger=StateLedger(manifest, logger=logger)
        )
        result = orchestrator.run(resume=parsed_args.resume)

    if result.succeeded:
        logger.info(
            f"{symbols.get('success', '')}====== Provisioning completed successfully ======"
        )
    else:
        logger.error(
            f"{symbols.get('critical', '')}====== Provisioning failed at step '{result.failed_task}' ======"
        )
    return result.exit_code


def _status(manifest: ProvisioningManifest, logger: logging.Logger) -> int:
    symbols = get_symbols(manifest)
    report = ProvisioningOrchestrator(manifest, logger=logger).status()
    for name, satisfied in report.items():
        if satisfied is None:
            logger.info(f"  {symbols.get('warning', '')} {name}: unknown")
        elif satisfied:
            logger.info(f"  {symbols.get('success', '')} {name}: satisfied")
        else:
            logger.info(f"  {symbols.get('info', '')} {name}: pending")
    return 0 if all(report.values()) else 1


def _render(manifest: ProvisioningManifest, logger: logging.Logger) -> int:
    units = ProvisioningOrchestrator(manifest, logger=logger).render()
    if not units:
        logger.info("No services declared.")
        return 0
    for file_name, content in units.items():
        print(f"# {manifest.systemd_unit_dir / file_name}")
        print(content)
    return 0


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the provisioner."""
    parsed_args = parse_args(args)
    logger = setup_logging(
        logging.DEBUG if parsed_args.verbose else logging.INFO,
        log_file=parsed_args.log_file,
    )

    if parsed_args.command == "list":
        logger.info("Provisioning steps (in execution order):")
        for i, name in enumerate(STEP_NAMES, 1):
            logger.info(f"  {i}. {name}")
        return 0

    try:
        manifest = load_manifest(
            parsed_args,
            config_file_path=parsed_args.config or DEFAULT_CONFIG_FILE,
            config_required=parsed_args.config is not None,
            current_logger=logger,
        )
        if parsed_args.command == "run":
            return _run(manifest, parsed_args, logger)
        if parsed_args.command == "status":
            return _status(manifest, logger)
        if parsed_args.command == "render":
            return _render(manifest, logger)
        logger.error(f"Unknown command: {parsed_args.command}")
        return 1
    except ProvisioningError as e:
        logger.error(f"{static_config.SYMBOLS['error']} {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning(f"{static_config.SYMBOLS['warning']} Interrupted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
