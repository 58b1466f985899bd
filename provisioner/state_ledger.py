# provisioner/state_ledger.py
# -*- coding: utf-8 -*-
"""
Ledger of completed provisioning steps, used by ``provision run --resume``.

The state file starts with a header holding a fingerprint of the manifest
and the script version. A ledger written for a different manifest is
cleared on load, so a changed configuration never resumes past steps it
would affect.
"""

import datetime
import hashlib
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import List, Optional

from common.command_utils import get_symbols, log_step
from provisioner import config as static_config
from provisioner.config_models import ProvisioningManifest

module_logger = logging.getLogger(__name__)

FINGERPRINT_PATTERN = re.compile(r"^# MANIFEST_HASH:\s*(\S+)", re.MULTILINE)


def manifest_fingerprint(manifest: ProvisioningManifest) -> str:
    payload = f"{static_config.SCRIPT_VERSION}\n{manifest.model_dump_json()}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class StateLedger:
    """Completed step names, one per line, below a fingerprint header."""

    def __init__(
        self,
        manifest: ProvisioningManifest,
        state_file: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.manifest = manifest
        self.state_file = Path(state_file or manifest.state_file)
        self.logger = logger or module_logger
        self.fingerprint = manifest_fingerprint(manifest)

    def _log(self, message: str, level: str = "info") -> None:
        log_step(message, level, self.logger, self.manifest)

    def _header(self) -> str:
        return (
            f"# MANIFEST_HASH: {self.fingerprint}\n"
            f"# Script Version: {static_config.SCRIPT_VERSION}\n"
        )

    def _write(self, steps: List[str]) -> None:
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            prefix="provision_state_", suffix=".txt", dir=self.state_file.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self._header())
                for step in steps:
                    f.write(f"{step}\n")
            os.replace(temp_path, self.state_file)
        finally:
            if os.path.exists(temp_path):
                os.unlink(temp_path)

    def completed_steps(self) -> List[str]:
        """Steps recorded for the current manifest. Empty for a foreign ledger."""
        try:
            content = self.state_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []

        match = FINGERPRINT_PATTERN.search(content)
        if not match or match.group(1) != self.fingerprint:
            symbols = get_symbols(self.manifest)
            self._log(
                f"{symbols.get('warning', '!')} State file {self.state_file} belongs to a different manifest. Clearing it.",
                "warning",
            )
            self.reset()
            return []

        return [
            line.strip()
            for line in content.splitlines()
            if line.strip() and not line.startswith("#")
        ]

    def is_completed(self, step: str) -> bool:
        return step in self.completed_steps()

    def mark_completed(self, step: str) -> None:
        steps = self.completed_steps()
        if step in steps:
            return
        steps.append(step)
        self._write(steps)
        self._log(
            f"Marked step '{step}' as completed at {datetime.datetime.now().isoformat(timespec='seconds')}.",
            "debug",
        )

    def reset(self) -> None:
        """Forget every completed step."""
        self._write([])
