"""
Database provisioner module.

Brings the database server up and makes sure the application user and
database exist with privileges granted. Each sub-step is gated by its own
existence check, except the grant, which is re-issued every run because
granting is naturally idempotent.
"""

import logging
import subprocess
from typing import Any, Dict, Optional, Sequence

from common.command_utils import run_command, run_elevated_command
from common.system_utils import systemctl
from provisioner.base_step import ProvisioningStep
from provisioner.components.capability.probe import CapabilityProbe
from provisioner.components.database.dialects import SqlDialect, get_dialect
from provisioner.config_models import ProvisioningManifest
from provisioner.errors import (
    DatabaseCreationError,
    DatabaseStartError,
    PrivilegeGrantError,
    UserCreationError,
)


class DatabaseProvisioner(ProvisioningStep):
    """
    Provisioner for the application database.

    Sub-steps, in order:
    1. service up: start the server unless it is active
    2. user exists: create the user unless a (name, host) row exists
    3. database exists: create the database unless it exists
    4. privileges granted: always grant, then flush where the dialect needs it

    The password of an existing user is never changed.
    """

    name = "database"
    description = "Provision database server, user and database"

    def __init__(
        self,
        manifest: ProvisioningManifest,
        probe: CapabilityProbe,
        dialect: Optional[SqlDialect] = None,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(manifest, logger)
        self.probe = probe
        self.settings = manifest.database
        self.dialect = dialect or get_dialect(self.settings.dialect)

    def _execute(
        self, sql: str, secrets: Sequence[str] = ()
    ) -> subprocess.CompletedProcess:
        command = self.dialect.client_command(sql)
        runner = run_elevated_command if self.dialect.elevated else run_command
        return runner(
            command,
            self.manifest,
            capture_output=True,
            current_logger=self.logger,
            secrets=secrets,
        )

    def _has_rows(self, sql: str) -> bool:
        result = self._execute(sql)
        return bool((result.stdout or "").strip())

    # --- service up ---

    def is_service_up(self) -> bool:
        return self.probe.is_service_active(self.settings.effective_service_name)

    def ensure_service_up(self) -> bool:
        """
        Start the database service if it is not active.

        Raises:
            DatabaseStartError: The service failed to start or is still inactive.
        """
        service = self.settings.effective_service_name
        if self.is_service_up():
            self.log(f"{self.symbols.get('success', '')} Database service '{service}' is already running.")
            return False

        self.log(f"{self.symbols.get('gear', '')} Database service '{service}' is not active. Starting it...")
        try:
            systemctl("start", service, self.manifest, self.logger)
        except (subprocess.CalledProcessError, OSError) as e:
            raise DatabaseStartError(f"Failed to start database service '{service}': {e}") from e
        if not self.is_service_up():
            raise DatabaseStartError(f"Database service '{service}' is not active after start.")
        self.log(f"{self.symbols.get('success', '')} Database service '{service}' started.", "success")
        return True

    # --- user exists ---

    def user_exists(self) -> bool:
        """
        Raises:
            UserCreationError: The user table could not be queried.
        """
        try:
            return self._has_rows(
                self.dialect.user_exists_sql(self.settings.user, self.settings.host)
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise UserCreationError(
                f"Could not check for database user '{self.settings.user}': {e}"
            ) from e

    def ensure_user(self) -> bool:
        """
        Create the application user unless it exists.

        Raises:
            UserCreationError: The existence query or the creation failed.
        """
        user, host = self.settings.user, self.settings.host
        if self.user_exists():
            self.log(f"{self.symbols.get('success', '')} Database user '{user}'@'{host}' already exists.")
            return False

        self.log(f"{self.symbols.get('gear', '')} Creating database user '{user}'@'{host}'...")
        try:
            self._execute(
                self.dialect.create_user_sql(user, host, self.settings.password),
                secrets=[self.settings.password],
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise UserCreationError(f"Failed to create database user '{user}': {e}") from e
        self.log(f"{self.symbols.get('success', '')} Database user '{user}' created.", "success")
        return True

    # --- database exists ---

    def database_exists(self) -> bool:
        """
        Raises:
            DatabaseCreationError: The catalog could not be queried.
        """
        try:
            return self._has_rows(self.dialect.database_exists_sql(self.settings.database))
        except (subprocess.CalledProcessError, OSError) as e:
            raise DatabaseCreationError(
                f"Could not check for database '{self.settings.database}': {e}"
            ) from e

    def ensure_database(self) -> bool:
        """
        Create the database unless it exists.

        Raises:
            DatabaseCreationError: The existence query or the creation failed.
        """
        database = self.settings.database
        if self.database_exists():
            self.log(f"{self.symbols.get('success', '')} Database '{database}' already exists.")
            return False

        self.log(f"{self.symbols.get('gear', '')} Creating database '{database}'...")
        try:
            self._execute(self.dialect.create_database_sql(database, self.settings.user))
        except (subprocess.CalledProcessError, OSError) as e:
            raise DatabaseCreationError(f"Failed to create database '{database}': {e}") from e
        self.log(f"{self.symbols.get('success', '')} Database '{database}' created.", "success")
        return True

    # --- privileges ---

    def grant_privileges(self) -> None:
        """
        Grant the user all privileges on the database, then flush.

        Raises:
            PrivilegeGrantError: The grant failed.
        """
        user, host, database = self.settings.user, self.settings.host, self.settings.database
        sql = self.dialect.grant_sql(user, host, database)
        if self.dialect.needs_flush:
            sql = f"{sql} {self.dialect.flush_sql()}"
        self.log(f"{self.symbols.get('gear', '')} Granting privileges on '{database}' to '{user}'...")
        try:
            self._execute(sql)
        except (subprocess.CalledProcessError, OSError) as e:
            raise PrivilegeGrantError(
                f"Failed to grant privileges on '{database}' to '{user}': {e}"
            ) from e
        self.log(f"{self.symbols.get('success', '')} Privileges granted.", "success")

    def is_satisfied(self, context: Dict[str, Any]) -> bool:
        return self.is_service_up() and self.user_exists() and self.database_exists()

    def run(self, context: Dict[str, Any]) -> Dict[str, bool]:
        changes = {
            "service_started": self.ensure_service_up(),
            "user_created": self.ensure_user(),
            "database_created": self.ensure_database(),
        }
        self.grant_privileges()
        return changes
