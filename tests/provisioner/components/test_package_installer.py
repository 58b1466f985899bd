import subprocess
from unittest.mock import patch

import pytest

from fakes import FakeProbe
from provisioner.components.packages.package_installer import PackageInstaller
from provisioner.errors import PackageInstallError

MODULE = "provisioner.components.packages.package_installer"


class TestPackageInstaller:
    @patch(f"{MODULE}.run_elevated_command")
    def test_present_package_is_not_installed(self, mock_elevated, manifest, mock_logger):
        installer = PackageInstaller(manifest, FakeProbe(present={"curl"}), mock_logger)

        assert installer.ensure("curl") is False
        mock_elevated.assert_not_called()
        mock_logger.info.assert_any_call("✅ curl is already installed.", exc_info=False)

    @patch(f"{MODULE}.run_elevated_command")
    def test_missing_package_runs_update_then_install(self, mock_elevated, manifest, mock_logger):
        installer = PackageInstaller(manifest, FakeProbe(), mock_logger)

        assert installer.ensure("npm") is True

        commands = [c.args[0] for c in mock_elevated.call_args_list]
        assert commands == [
            ["apt-get", "update", "-yq"],
            ["apt-get", "install", "-yq", "npm"],
        ]

    @patch(f"{MODULE}.run_elevated_command")
    def test_lists_are_updated_once_per_run(self, mock_elevated, manifest, mock_logger):
        installer = PackageInstaller(manifest, FakeProbe(), mock_logger)

        installed = installer.run({})

        assert installed == ["curl", "npm"]
        commands = [c.args[0] for c in mock_elevated.call_args_list]
        assert commands.count(["apt-get", "update", "-yq"]) == 1
        assert ["apt-get", "install", "-yq", "curl"] in commands
        assert ["apt-get", "install", "-yq", "npm"] in commands

    @patch(f"{MODULE}.run_elevated_command")
    def test_install_failure_raises_and_is_not_retried(self, mock_elevated, manifest, mock_logger):
        mock_elevated.side_effect = [
            None,
            subprocess.CalledProcessError(100, ["apt-get", "install", "-yq", "npm"]),
        ]
        installer = PackageInstaller(manifest, FakeProbe(), mock_logger)

        with pytest.raises(PackageInstallError) as exc_info:
            installer.ensure("npm")

        assert exc_info.value.package == "npm"
        assert exc_info.value.step == "packages"
        assert mock_elevated.call_count == 2
        mock_logger.error.assert_any_call("❌ Error: Failed to install npm.", exc_info=False)

    def test_is_satisfied_uses_probe_only(self, manifest, mock_logger):
        probe = FakeProbe(present={"curl", "npm"})
        installer = PackageInstaller(manifest, probe, mock_logger)

        assert installer.is_satisfied({}) is True
        assert probe.probed == ["curl", "npm"]
        assert PackageInstaller(manifest, FakeProbe(present={"curl"}), mock_logger).is_satisfied({}) is False
