import logging
import subprocess
from unittest.mock import MagicMock

import pytest

from common.system_utils import (
    get_invoking_user,
    systemctl,
    systemd_reload,
    systemd_unit_is_active,
    systemd_unit_is_enabled,
)


@pytest.fixture
def mock_logger(mocker):
    """Fixture to provide a mock logger instance."""
    return mocker.Mock(spec=logging.Logger)


def test_get_invoking_user_prefers_sudo_user(monkeypatch):
    monkeypatch.setenv("SUDO_USER", "svc")
    assert get_invoking_user() == "svc"


def test_get_invoking_user_ignores_root_sudo_user(monkeypatch, mocker):
    monkeypatch.setenv("SUDO_USER", "root")
    mocker.patch("common.system_utils.getpass.getuser", return_value="deploy")
    assert get_invoking_user() == "deploy"


def test_get_invoking_user_without_sudo(monkeypatch, mocker):
    monkeypatch.delenv("SUDO_USER", raising=False)
    mocker.patch("common.system_utils.getpass.getuser", return_value="deploy")
    assert get_invoking_user() == "deploy"


def test_systemd_unit_is_active(mocker, mock_logger):
    run_mock = mocker.patch(
        "common.system_utils.run_command", return_value=MagicMock(returncode=0)
    )

    assert systemd_unit_is_active("mysql", None, mock_logger) is True
    run_mock.assert_called_once_with(
        ["systemctl", "is-active", "--quiet", "mysql"],
        None,
        check=False,
        capture_output=True,
        current_logger=mock_logger,
    )


def test_systemd_unit_is_enabled_false_on_non_zero(mocker, mock_logger):
    mocker.patch(
        "common.system_utils.run_command", return_value=MagicMock(returncode=1)
    )
    assert systemd_unit_is_enabled("app-backend.service", None, mock_logger) is False


def test_systemd_query_without_systemctl_is_false(mocker, mock_logger):
    mocker.patch("common.system_utils.run_command", side_effect=FileNotFoundError)
    assert systemd_unit_is_active("mysql", None, mock_logger) is False
    mock_logger.warning.assert_called_once()


def test_systemd_reload_raises_on_failure(mocker, mock_logger):
    mocker.patch(
        "common.system_utils.run_elevated_command",
        side_effect=subprocess.CalledProcessError(1, ["systemctl", "daemon-reload"]),
    )
    with pytest.raises(subprocess.CalledProcessError):
        systemd_reload(None, mock_logger)


def test_systemctl_runs_elevated(mocker, mock_logger):
    elevated = mocker.patch("common.system_utils.run_elevated_command")

    systemctl("enable", "app-backend.service", None, mock_logger)

    elevated.assert_called_once_with(
        ["systemctl", "enable", "app-backend.service"],
        None,
        capture_output=True,
        current_logger=mock_logger,
    )
