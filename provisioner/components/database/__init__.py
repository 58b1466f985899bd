"""
Database provisioning components.

This package provides the database provisioner and the SQL dialects it
speaks (MySQL/MariaDB and PostgreSQL).
"""

from provisioner.components.database.database_provisioner import (
    DatabaseProvisioner,
)
from provisioner.components.database.dialects import (
    MySqlDialect,
    PostgresDialect,
    get_dialect,
)

__all__ = ["DatabaseProvisioner", "MySqlDialect", "PostgresDialect", "get_dialect"]
