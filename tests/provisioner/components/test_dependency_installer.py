import os
import subprocess
from unittest.mock import MagicMock

import pytest

from provisioner.components.dependencies.dependency_installer import (
    INSTALL_MARKER,
    DependencyInstaller,
)
from provisioner.errors import (
    DependencyInstallError,
    DirectoryNotFoundError,
    VersionResolutionError,
)

MODULE = "provisioner.components.dependencies.dependency_installer"


def mark_installed(project_dir, newer=True):
    marker = project_dir / INSTALL_MARKER
    marker.parent.mkdir(parents=True, exist_ok=True)
    marker.write_text("{}")
    source_mtime = (project_dir / "package.json").stat().st_mtime
    offset = 10 if newer else -10
    os.utime(marker, (source_mtime + offset, source_mtime + offset))


class TestDependencyInstaller:
    def test_missing_directory(self, manifest, mock_logger, tmp_path, mocker):
        run_mock = mocker.patch(f"{MODULE}.run_command")

        with pytest.raises(DirectoryNotFoundError) as exc_info:
            DependencyInstaller(manifest, logger=mock_logger).install(tmp_path / "nope")

        assert exc_info.value.directory == tmp_path / "nope"
        run_mock.assert_not_called()

    def test_runs_install_in_project_directory(self, manifest, mock_logger, project_dirs, mocker):
        run_mock = mocker.patch(f"{MODULE}.run_command")
        _, backend = project_dirs

        assert DependencyInstaller(manifest, logger=mock_logger).install(backend) is True

        args, kwargs = run_mock.call_args
        assert args[0] == ["npm", "install"]
        assert kwargs["cwd"] == str(backend)

    def test_runs_through_resolved_runtime(self, manifest, mock_logger, project_dirs, mocker):
        run_mock = mocker.patch(f"{MODULE}.run_command")
        runtime = MagicMock()
        runtime.wrap.return_value = ["bash", "-c", "wrapped"]
        frontend, _ = project_dirs

        DependencyInstaller(manifest, runtime, mock_logger).install(frontend, version="18")

        runtime.wrap.assert_called_once_with("18", ["npm", "install"])
        assert run_mock.call_args.args[0] == ["bash", "-c", "wrapped"]

    def test_up_to_date_project_is_skipped(self, manifest, mock_logger, project_dirs, mocker):
        run_mock = mocker.patch(f"{MODULE}.run_command")
        frontend, _ = project_dirs
        mark_installed(frontend)

        assert DependencyInstaller(manifest, logger=mock_logger).install(frontend) is False
        run_mock.assert_not_called()

    def test_stale_marker_reinstalls(self, manifest, mock_logger, project_dirs, mocker):
        run_mock = mocker.patch(f"{MODULE}.run_command")
        frontend, _ = project_dirs
        mark_installed(frontend, newer=False)

        assert DependencyInstaller(manifest, logger=mock_logger).install(frontend) is True
        run_mock.assert_called_once()

    def test_failure_raises_dependency_install_error(self, manifest, mock_logger, project_dirs, mocker):
        mocker.patch(
            f"{MODULE}.run_command",
            side_effect=subprocess.CalledProcessError(1, ["npm", "install"]),
        )
        _, backend = project_dirs

        with pytest.raises(DependencyInstallError) as exc_info:
            DependencyInstaller(manifest, logger=mock_logger).install(backend)

        assert exc_info.value.directory == backend

    def test_run_requires_resolved_versions(self, manifest, mock_logger, mocker):
        run_mock = mocker.patch(f"{MODULE}.run_command")

        with pytest.raises(VersionResolutionError):
            DependencyInstaller(manifest, logger=mock_logger).run({})

        run_mock.assert_not_called()

    def test_run_installs_every_project(self, manifest, mock_logger, mocker):
        mocker.patch(f"{MODULE}.run_command")
        installer = DependencyInstaller(manifest, logger=mock_logger)

        installed = installer.run({"runtime_versions": {"frontend": "18", "backend": "16"}})

        assert installed == ["frontend", "backend"]
        assert installer.is_satisfied({}) is False
