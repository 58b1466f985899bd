# common/network_utils.py
# -*- coding: utf-8 -*-
"""
Network-related utility functions.
"""
import logging
import socket
from typing import Optional

module_logger = logging.getLogger(__name__)


def is_port_open(
        host: str,
        port: int,
        timeout: float = 1.0,
        current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Returns True when a TCP connection to ``host:port`` succeeds.

    Connection refusals, timeouts and resolution failures are a normal
    False result.
    """
    logger_to_use = current_logger if current_logger else module_logger
    try:
        with socket.create_connection((host, int(port)), timeout=timeout):
            return True
    except OSError as e:
        logger_to_use.debug(f"Connection to {host}:{port} failed: {e}")
        return False
