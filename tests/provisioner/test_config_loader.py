# tests/provisioner/test_config_loader.py
# -*- coding: utf-8 -*-
"""
Tests for loading the provisioning manifest.
"""

import argparse

import pytest
import yaml

from fakes import write_package_json
from provisioner.config_loader import load_environment_file, load_manifest
from provisioner.config_models import DatabaseDialect
from provisioner.errors import ConfigurationError, EnvironmentFileError


def _write_config(tmp_path, data):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def _project_config(**database_overrides):
    return {
        "projects": [
            {"name": "frontend", "directory": "frontend"},
            {"name": "backend", "directory": "backend", "has_schema": True},
        ],
        "database": {"database": "shop", "user": "shop", "password": "pw", **database_overrides},
    }


@pytest.fixture
def workspace(tmp_path):
    write_package_json(tmp_path / "frontend", {"node": "18"})
    write_package_json(tmp_path / "backend")
    (tmp_path / "backend" / ".env").write_text(
        "# generated\nAPI_KEY=abc123\nGREETING=\"hello world\"\n", encoding="utf-8"
    )
    return tmp_path


class TestLoadManifest:
    def test_yaml_values_are_loaded(self, workspace, mock_logger):
        config = _write_config(workspace, _project_config())

        manifest = load_manifest(config_file_path=str(config), current_logger=mock_logger)

        assert manifest.database.database == "shop"
        assert manifest.database.dialect == DatabaseDialect.MYSQL
        assert [p.name for p in manifest.projects] == ["frontend", "backend"]
        assert manifest.schema_project.name == "backend"

    def test_relative_project_directories_resolve_against_config_file(self, workspace, mock_logger):
        config = _write_config(workspace, _project_config())

        manifest = load_manifest(config_file_path=str(config), current_logger=mock_logger)

        assert manifest.projects[0].directory == workspace / "frontend"
        assert manifest.projects[1].directory.is_absolute()

    def test_schema_project_env_file_is_read(self, workspace, mock_logger):
        config = _write_config(workspace, _project_config())

        manifest = load_manifest(config_file_path=str(config), current_logger=mock_logger)

        assert manifest.env_file == workspace / "backend" / ".env"
        assert manifest.environment == {"API_KEY": "abc123", "GREETING": "hello world"}

    def test_database_url_from_env_file_wins(self, workspace, mock_logger):
        (workspace / "backend" / ".env").write_text(
            "DATABASE_URL=mysql://deploy:x@db:3306/shop\n", encoding="utf-8"
        )
        config = _write_config(workspace, _project_config())

        manifest = load_manifest(config_file_path=str(config), current_logger=mock_logger)

        assert manifest.database_url == "mysql://deploy:x@db:3306/shop"

    def test_database_url_is_built_from_credentials(self, workspace, mock_logger):
        (workspace / "backend" / ".env").write_text("API_KEY=1\n", encoding="utf-8")
        config = _write_config(workspace, _project_config(dialect="postgresql"))

        manifest = load_manifest(config_file_path=str(config), current_logger=mock_logger)

        assert manifest.database_url == "postgresql://shop:pw@localhost:5432/shop"

    def test_missing_required_env_file(self, workspace, mock_logger):
        (workspace / "backend" / ".env").unlink()
        config = _write_config(workspace, _project_config())

        with pytest.raises(EnvironmentFileError) as exc_info:
            load_manifest(config_file_path=str(config), current_logger=mock_logger)

        assert exc_info.value.path == workspace / "backend" / ".env"

    def test_missing_optional_env_file_is_skipped(self, workspace, mock_logger):
        (workspace / "backend" / ".env").unlink()
        data = _project_config()
        data["env_file_required"] = False
        config = _write_config(workspace, data)

        manifest = load_manifest(config_file_path=str(config), current_logger=mock_logger)

        assert manifest.environment == {}

    def test_cli_arguments_override_yaml(self, workspace, mock_logger):
        config = _write_config(workspace, _project_config())
        cli_args = argparse.Namespace(
            db_name="override", db_port=3307, service_user="deploy", db_host=None
        )

        manifest = load_manifest(cli_args, config_file_path=str(config), current_logger=mock_logger)

        assert manifest.database.database == "override"
        assert manifest.database.effective_port == 3307
        assert manifest.database.user == "shop"
        assert manifest.service_user == "deploy"

    def test_environment_variables_sit_below_yaml(self, workspace, mock_logger, monkeypatch):
        monkeypatch.setenv("PROVISION_SERVICE_USER", "from-env")
        monkeypatch.setenv("PROVISION_DATABASE__HOST", "db.internal")
        config = _write_config(workspace, _project_config(host="db.yaml"))

        manifest = load_manifest(config_file_path=str(config), current_logger=mock_logger)

        assert manifest.service_user == "from-env"
        assert manifest.database.host == "db.yaml"

    def test_missing_optional_config_uses_defaults(self, tmp_path, mock_logger):
        manifest = load_manifest(
            config_file_path=str(tmp_path / "absent.yaml"), current_logger=mock_logger
        )

        assert manifest.projects == []
        assert manifest.readiness.port == 3000
        assert manifest.default_runtime_version == "16"

    def test_missing_required_config(self, tmp_path, mock_logger):
        with pytest.raises(ConfigurationError, match="not found"):
            load_manifest(
                config_file_path=str(tmp_path / "absent.yaml"),
                config_required=True,
                current_logger=mock_logger,
            )

    def test_unparseable_yaml(self, tmp_path, mock_logger):
        config = tmp_path / "config.yaml"
        config.write_text("projects: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Could not parse"):
            load_manifest(config_file_path=str(config), current_logger=mock_logger)

    def test_yaml_must_be_a_mapping(self, tmp_path, mock_logger):
        config = tmp_path / "config.yaml"
        config.write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="mapping"):
            load_manifest(config_file_path=str(config), current_logger=mock_logger)

    def test_invalid_identifier_is_a_configuration_error(self, workspace, mock_logger):
        config = _write_config(workspace, _project_config(database="shop; DROP TABLE x"))

        with pytest.raises(ConfigurationError):
            load_manifest(config_file_path=str(config), current_logger=mock_logger)


class TestLoadEnvironmentFile:
    def test_comments_are_ignored(self, tmp_path, mock_logger):
        env_file = tmp_path / ".env"
        env_file.write_text("# comment\nA=1\n\nB='two words'\n", encoding="utf-8")

        assert load_environment_file(env_file, True, mock_logger) == {"A": "1", "B": "two words"}

    def test_no_file_configured_warns_when_required(self, mock_logger):
        assert load_environment_file(None, True, mock_logger) == {}

        mock_logger.warning.assert_called_once()
        assert "required" in mock_logger.warning.call_args.args[0]

    def test_no_file_configured_is_quiet_when_optional(self, mock_logger):
        assert load_environment_file(None, False, mock_logger) == {}

        mock_logger.warning.assert_not_called()

    def test_missing_required_file(self, tmp_path, mock_logger):
        with pytest.raises(EnvironmentFileError, match="not found"):
            load_environment_file(tmp_path / ".env", True, mock_logger)
