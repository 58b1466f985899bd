"""
Runtime version resolution and installation (Node.js through nvm).
"""

from provisioner.components.runtime.runtime_version_resolver import (
    RuntimeVersionResolver,
)

__all__ = ["RuntimeVersionResolver"]
