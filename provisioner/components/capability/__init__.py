"""
Capability probes used as precondition gates.
"""

from provisioner.components.capability.probe import (
    CapabilityProbe,
    DebianCapabilityProbe,
)

__all__ = ["CapabilityProbe", "DebianCapabilityProbe"]
