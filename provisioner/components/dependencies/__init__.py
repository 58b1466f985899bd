from provisioner.components.dependencies.dependency_installer import (
    DependencyInstaller,
)

__all__ = ["DependencyInstaller"]
