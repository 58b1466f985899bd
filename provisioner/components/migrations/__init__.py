from provisioner.components.migrations.schema_migrator import SchemaMigrator

__all__ = ["SchemaMigrator"]
