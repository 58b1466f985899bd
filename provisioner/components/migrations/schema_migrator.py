"""
Schema migrator module.

Applies pending schema migrations with the migration tool's deploy mode
(``npx prisma migrate deploy``) from the project that carries the schema.
"""

import logging
import subprocess
from typing import Any, Dict, List, Optional

from common.command_utils import build_command_env, run_command
from provisioner.base_step import ProvisioningStep
from provisioner.components.runtime.runtime_version_resolver import (
    RuntimeVersionResolver,
)
from provisioner.config_models import ProvisioningManifest
from provisioner.errors import DirectoryNotFoundError, MigrationError


class SchemaMigrator(ProvisioningStep):
    """
    Migrator for the application schema.

    Deploy mode never prompts and is a no-op against an up-to-date schema,
    so the step is safe to re-run. The status command (exit 0 when nothing
    is pending) is used as the idempotency predicate.
    """

    name = "migrations"
    description = "Apply database schema migrations"

    def __init__(
        self,
        manifest: ProvisioningManifest,
        runtime: Optional[RuntimeVersionResolver] = None,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(manifest, logger)
        self.runtime = runtime

    def _command(self, command: List[str], version: Optional[str]) -> List[str]:
        if self.runtime is None:
            return list(command)
        return self.runtime.wrap(version, command)

    def _env(self) -> Dict[str, str]:
        return build_command_env(
            self.manifest, {"DATABASE_URL": self.manifest.database_url}
        )

    def is_up_to_date(self, version: Optional[str] = None) -> bool:
        project = self.manifest.schema_project
        if project is None:
            return True
        if not project.directory.is_dir():
            return False
        try:
            result = run_command(
                self._command(self.manifest.migration_status_command, version),
                self.manifest,
                check=False,
                capture_output=True,
                current_logger=self.logger,
                cwd=str(project.directory),
                env=self._env(),
                secrets=[self.manifest.database.password],
            )
        except OSError as e:
            self.log(
                f"{self.symbols.get('warning', '')} Could not check migration status: {e}",
                "warning",
            )
            return False
        return result.returncode == 0

    def apply(self, version: Optional[str] = None) -> bool:
        """
        Deploy pending migrations.

        Returns:
            False when no project carries a schema, True after a deploy.

        Raises:
            DirectoryNotFoundError: The schema project directory is missing.
            MigrationError: The deploy command failed.
        """
        project = self.manifest.schema_project
        if project is None:
            self.log(f"{self.symbols.get('info', '')} No project carries a schema. Skipping migrations.")
            return False
        if not project.directory.is_dir():
            raise DirectoryNotFoundError(project.directory)

        self.log(f"{self.symbols.get('step', '')} Applying database migrations for {project.name}...")
        try:
            run_command(
                self._command(self.manifest.migration_command, version),
                self.manifest,
                current_logger=self.logger,
                cwd=str(project.directory),
                env=self._env(),
                secrets=[self.manifest.database.password],
            )
        except (subprocess.CalledProcessError, OSError) as e:
            self.log(
                f"{self.symbols.get('error', '')} Error: Database migration failed for {project.name}.",
                "error",
            )
            raise MigrationError(f"Migration deploy failed in {project.directory}: {e}") from e

        self.log(f"{self.symbols.get('success', '')} Database migrations applied.", "success")
        return True

    def _version(self, context: Dict[str, Any]) -> Optional[str]:
        project = self.manifest.schema_project
        if project is None:
            return None
        return (context.get("runtime_versions") or {}).get(project.name)

    def is_satisfied(self, context: Dict[str, Any]) -> bool:
        return self.is_up_to_date(self._version(context))

    def run(self, context: Dict[str, Any]) -> bool:
        """Deploy pending migrations unless the status check reports none."""
        version = self._version(context)
        if self.manifest.schema_project is not None and self.is_up_to_date(version):
            self.log(f"{self.symbols.get('success', '')} Database schema is up to date.")
            return False
        return self.apply(version)
