"""
Readiness probe module.

Polls the application's TCP port until it accepts a connection or the
attempt budget runs out. The only step in the pipeline that retries.
"""

import logging
import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from common.network_utils import is_port_open
from provisioner.base_step import ProvisioningStep
from provisioner.config_models import ProvisioningManifest
from provisioner.errors import ReadinessTimeoutError


class ReadinessTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = Field(default=3000, gt=0, lt=65536)
    interval_seconds: float = Field(default=3.0, gt=0)
    max_attempts: int = Field(default=30, gt=0)

    @classmethod
    def from_manifest(cls, manifest: ProvisioningManifest) -> "ReadinessTarget":
        return cls(**manifest.readiness.model_dump())

    @property
    def total_wait_seconds(self) -> float:
        return self.interval_seconds * self.max_attempts


class ReadinessProbe(ProvisioningStep):
    name = "readiness"
    description = "Wait for the application port"

    def __init__(
        self,
        manifest: ProvisioningManifest,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(manifest, logger)
        self.target = ReadinessTarget.from_manifest(manifest)

    def wait_until_ready(self, target: Optional[ReadinessTarget] = None) -> int:
        """
        Poll ``target`` until its port accepts a TCP connection.

        Sleeps ``interval_seconds`` after every failed poll, so the worst case
        waits ``interval_seconds * max_attempts``.

        Returns:
            The attempt number that succeeded.

        Raises:
            ReadinessTimeoutError: No poll succeeded.
        """
        target = target or self.target
        self.log(
            f"{self.symbols.get('step', '')} Waiting for the application on {target.host}:{target.port}..."
        )
        for attempt in range(1, target.max_attempts + 1):
            if is_port_open(target.host, target.port, current_logger=self.logger):
                self.log(
                    f"{self.symbols.get('success', '')} Application is available on port {target.port}.",
                    "success",
                )
                return attempt
            self.log(
                f"{self.symbols.get('info', '')} Port {target.port} is not available yet. "
                f"Waiting for {target.interval_seconds:g} seconds... (Attempt {attempt}/{target.max_attempts})"
            )
            time.sleep(target.interval_seconds)

        self.log(
            f"{self.symbols.get('error', '')} Error: Application is not available on port {target.port} "
            f"after {target.total_wait_seconds:g} seconds.",
            "error",
        )
        raise ReadinessTimeoutError(target.port, target.total_wait_seconds, target.host)

    def is_satisfied(self, context: Dict[str, Any]) -> bool:
        return is_port_open(self.target.host, self.target.port, current_logger=self.logger)

    def run(self, context: Dict[str, Any]) -> int:
        return self.wait_until_ready()
