"""
SQL dialects for the database provisioner.

Each dialect knows how to reach the server's admin shell and which
statements create and probe users, databases and privileges.
Identifiers are validated by the manifest model before they get here.
"""

from abc import ABC, abstractmethod
from typing import List

from provisioner.config_models import DatabaseDialect


class SqlDialect(ABC):
    """Admin shell invocation and statements for one database server flavour."""

    #: run the client through run_elevated_command
    elevated: bool = False
    #: FLUSH PRIVILEGES or equivalent after a grant
    needs_flush: bool = False

    @abstractmethod
    def client_command(self, sql: str) -> List[str]:
        """Command that runs ``sql`` as the server administrator, tab-separated, no headers."""

    @staticmethod
    def quote_literal(value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    @abstractmethod
    def user_exists_sql(self, user: str, host: str) -> str: ...

    @abstractmethod
    def database_exists_sql(self, database: str) -> str: ...

    @abstractmethod
    def create_user_sql(self, user: str, host: str, password: str) -> str: ...

    @abstractmethod
    def create_database_sql(self, database: str, owner: str) -> str: ...

    @abstractmethod
    def grant_sql(self, user: str, host: str, database: str) -> str: ...

    def flush_sql(self) -> str:
        return ""


class MySqlDialect(SqlDialect):
    """MySQL / MariaDB through ``mysql`` as root (unix socket auth)."""

    elevated = True
    needs_flush = True

    def client_command(self, sql: str) -> List[str]:
        return ["mysql", "-u", "root", "-N", "-B", "-e", sql]

    @staticmethod
    def quote_literal(value: str) -> str:
        escaped = value.replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"

    def user_exists_sql(self, user: str, host: str) -> str:
        return (
            "SELECT User FROM mysql.user WHERE "
            f"User = {self.quote_literal(user)} AND Host = {self.quote_literal(host)};"
        )

    def database_exists_sql(self, database: str) -> str:
        return (
            "SELECT SCHEMA_NAME FROM INFORMATION_SCHEMA.SCHEMATA WHERE "
            f"SCHEMA_NAME = {self.quote_literal(database)};"
        )

    def create_user_sql(self, user: str, host: str, password: str) -> str:
        return (
            f"CREATE USER {self.quote_literal(user)}@{self.quote_literal(host)} "
            f"IDENTIFIED BY {self.quote_literal(password)};"
        )

    def create_database_sql(self, database: str, owner: str) -> str:
        return f"CREATE DATABASE `{database}` CHARACTER SET utf8mb4;"

    def grant_sql(self, user: str, host: str, database: str) -> str:
        return (
            f"GRANT ALL PRIVILEGES ON `{database}`.* TO "
            f"{self.quote_literal(user)}@{self.quote_literal(host)};"
        )

    def flush_sql(self) -> str:
        return "FLUSH PRIVILEGES;"


class PostgresDialect(SqlDialect):
    """PostgreSQL through ``psql`` as the postgres system user."""

    def client_command(self, sql: str) -> List[str]:
        return ["sudo", "-u", "postgres", "psql", "-v", "ON_ERROR_STOP=1", "-tAc", sql]

    def user_exists_sql(self, user: str, host: str) -> str:
        # roles are not host-scoped in PostgreSQL; pg_hba.conf handles hosts
        return f"SELECT 1 FROM pg_roles WHERE rolname = {self.quote_literal(user)};"

    def database_exists_sql(self, database: str) -> str:
        return f"SELECT 1 FROM pg_database WHERE datname = {self.quote_literal(database)};"

    def create_user_sql(self, user: str, host: str, password: str) -> str:
        return f'CREATE USER "{user}" WITH PASSWORD {self.quote_literal(password)};'

    def create_database_sql(self, database: str, owner: str) -> str:
        return f"CREATE DATABASE \"{database}\" WITH OWNER \"{owner}\" ENCODING 'UTF8';"

    def grant_sql(self, user: str, host: str, database: str) -> str:
        return f'GRANT ALL PRIVILEGES ON DATABASE "{database}" TO "{user}";'


def get_dialect(dialect: DatabaseDialect) -> SqlDialect:
    if dialect == DatabaseDialect.POSTGRESQL:
        return PostgresDialect()
    return MySqlDialect()
