"""
Base class for all provisioning steps.

A step owns one stage of the pipeline. It can report whether its effect is
already in place without changing anything (``is_satisfied``) and it can
bring the host to that state (``run``), performing only the mutating
actions whose own existence checks come back negative.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from common.command_utils import get_symbols, log_step
from provisioner.config_models import ProvisioningManifest


class ProvisioningStep(ABC):
    """
    Base class for pipeline steps.

    Subclasses set ``name`` (stable identifier, also used by the completion
    ledger) and ``description`` (human readable).
    """

    name: str = ""
    description: str = ""

    def __init__(
        self,
        manifest: ProvisioningManifest,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            manifest: The provisioning manifest.
            logger: Optional logger instance. If not provided, a new logger will be created.
        """
        self.manifest = manifest
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def symbols(self) -> Dict[str, str]:
        return get_symbols(self.manifest)

    def log(self, message: str, level: str = "info", exc_info: bool = False) -> None:
        log_step(message, level, self.logger, self.manifest, exc_info=exc_info)

    @abstractmethod
    def is_satisfied(self, context: Dict[str, Any]) -> bool:
        """
        Check, without side effects, whether this step has nothing left to do.

        Args:
            context: Values published by earlier steps.
        """

    @abstractmethod
    def run(self, context: Dict[str, Any]) -> Any:
        """
        Bring the host to the state this step is responsible for.

        Raises:
            ProvisioningError: On any failure. Never retried.
        """

    def publish(self, context: Dict[str, Any]) -> None:
        """
        Put this step's outputs into ``context`` without changing the host.

        Called instead of ``run`` when a resumed run skips the step, so later
        steps still find what they read from the context.
        """

    def get_description(self) -> str:
        return self.description or self.name
