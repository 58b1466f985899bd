# tests/conftest.py
import logging
from unittest.mock import MagicMock

import pytest

from fakes import write_package_json
from provisioner.config_models import ProvisioningManifest

TEST_SYMBOLS = {
    "success": "✅",
    "error": "❌",
    "warning": "!",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
}


@pytest.fixture
def mock_logger():
    """Fixture to create a mock logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def project_dirs(tmp_path):
    frontend = tmp_path / "srv" / "app" / "frontend"
    backend = tmp_path / "srv" / "app" / "backend"
    write_package_json(frontend, {"node": "18"})
    write_package_json(backend)
    return frontend, backend


@pytest.fixture
def manifest(tmp_path, project_dirs):
    """A two-project manifest whose host paths all live under tmp_path."""
    frontend, backend = project_dirs
    return ProvisioningManifest(
        packages=["curl", "npm"],
        nvm_dir=tmp_path / ".nvm",
        projects=[
            {
                "name": "frontend",
                "directory": frontend,
                "services": [
                    {
                        "name": "app-frontend-build",
                        "command": "npm run build",
                        "type": "oneshot",
                    }
                ],
            },
            {
                "name": "backend",
                "directory": backend,
                "has_schema": True,
                "services": [
                    {
                        "name": "app-backend",
                        "description": "Application backend",
                        "command": "npm run start",
                    }
                ],
            },
        ],
        database={"user": "app", "password": "s3cret", "database": "app"},
        service_user="svc",
        systemd_unit_dir=tmp_path / "systemd",
        state_file=tmp_path / "state" / "completed_steps.txt",
        lock_file=tmp_path / "provision.lock",
        symbols=TEST_SYMBOLS,
    )
