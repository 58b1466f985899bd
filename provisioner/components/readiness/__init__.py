from provisioner.components.readiness.readiness_probe import (
    ReadinessProbe,
    ReadinessTarget,
)

__all__ = ["ReadinessProbe", "ReadinessTarget"]
