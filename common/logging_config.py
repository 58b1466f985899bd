# common/logging_config.py
# -*- coding: utf-8 -*-
"""
Logging setup for the provisioner.

Every event is one line, "<timestamp> - <message>", written to stdout and
optionally appended to a log file.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

from provisioner import config as static_config


def setup_logging(
    log_level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    log_format_str: Optional[str] = None,
) -> logging.Logger:
    """
    Configures the root logger.

    Parameters:
    log_level: int
        The logging level to configure. Defaults to logging.INFO.
    log_file: Optional[str]
        Append log lines to this file as well. Parent directories are created.
    log_to_console: bool
        Whether to log to stdout. Defaults to True.
    log_format_str: Optional[str]
        Format override. Defaults to "%(asctime)s - %(message)s".

    Returns:
    logging.Logger
        The "provisioner" logger.
    """
    handlers: List[logging.Handler] = []
    if log_file:
        try:
            log_file_path = Path(log_file)
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file_path, mode="a"))
        except OSError as e:
            print(
                f"Warning: Could not create file handler for log file {log_file}: {e}",
                file=sys.stderr,
            )

    if log_to_console or not handlers:
        handlers.append(logging.StreamHandler(sys.stdout))

    formatter = logging.Formatter(
        fmt=log_format_str or static_config.LOG_FORMAT,
        datefmt=static_config.LOG_DATE_FORMAT,
    )
    for handler in handlers:
        handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger("provisioner")
    logger.debug(
        f"Logging configured. Level: {logging.getLevelName(log_level)}."
    )
    return logger
