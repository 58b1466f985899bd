"""
systemd service components.

The builder turns declared services into descriptors and unit file text;
the registrar installs, enables and starts them.
"""

from provisioner.components.services.descriptor_builder import (
    ServiceDescriptor,
    ServiceDescriptorBuilder,
    render,
)
from provisioner.components.services.service_registrar import ServiceRegistrar

__all__ = [
    "ServiceDescriptor",
    "ServiceDescriptorBuilder",
    "ServiceRegistrar",
    "render",
]
