from provisioner.components.packages.package_installer import PackageInstaller

__all__ = ["PackageInstaller"]
