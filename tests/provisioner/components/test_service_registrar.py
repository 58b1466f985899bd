import subprocess

import pytest

from fakes import FakeSystemd
from provisioner.components.services.descriptor_builder import (
    ServiceDescriptorBuilder,
    render,
)
from provisioner.components.services.service_registrar import ServiceRegistrar
from provisioner.errors import (
    DaemonReloadError,
    ServiceEnableError,
    ServiceStartError,
    ServiceWriteError,
)

MODULE = "provisioner.components.services.service_registrar"


@pytest.fixture
def descriptors(manifest, mock_logger):
    return ServiceDescriptorBuilder(manifest, mock_logger).build_all({})


class TestServiceRegistrar:
    def test_fresh_host(self, mocker, manifest, mock_logger, descriptors):
        systemd = FakeSystemd(mocker)
        registrar = ServiceRegistrar(manifest, mock_logger)

        changed = registrar.run({"descriptors": descriptors})

        assert changed == ["app-frontend-build.service", "app-backend.service"]
        assert systemd.actions == [
            ("write", "app-frontend-build.service"),
            ("write", "app-backend.service"),
            ("daemon-reload",),
            ("enable", "app-frontend-build.service"),
            ("start", "app-frontend-build.service"),
            ("enable", "app-backend.service"),
            ("start", "app-backend.service"),
        ]
        unit_file = manifest.systemd_unit_dir / "app-backend.service"
        assert unit_file.read_text(encoding="utf-8") == render(descriptors[1])

    def test_second_run_performs_no_actions(self, mocker, manifest, mock_logger, descriptors):
        systemd = FakeSystemd(mocker)
        registrar = ServiceRegistrar(manifest, mock_logger)
        registrar.run({"descriptors": descriptors})
        systemd.actions.clear()

        assert registrar.is_satisfied({"descriptors": descriptors}) is True
        assert registrar.run({"descriptors": descriptors}) == []
        assert systemd.actions == []

    def test_changed_unit_is_rewritten_and_restarted(self, mocker, manifest, mock_logger, descriptors):
        systemd = FakeSystemd(mocker)
        registrar = ServiceRegistrar(manifest, mock_logger)
        registrar.run({"descriptors": descriptors})
        systemd.actions.clear()
        (manifest.systemd_unit_dir / "app-backend.service").write_text("[Unit]\nDescription=old\n")

        registrar.run({"descriptors": descriptors})

        assert systemd.actions == [
            ("write", "app-backend.service"),
            ("daemon-reload",),
            ("restart", "app-backend.service"),
        ]

    def test_disabled_service_is_not_enabled(self, mocker, manifest, mock_logger, descriptors):
        systemd = FakeSystemd(mocker)
        descriptor = descriptors[1].model_copy(update={"enabled": False})

        ServiceRegistrar(manifest, mock_logger).register([descriptor])

        assert ("enable", "app-backend.service") not in systemd.actions
        assert ("start", "app-backend.service") in systemd.actions

    def test_write_failure(self, mocker, manifest, mock_logger, descriptors):
        mocker.patch(
            f"{MODULE}.run_elevated_command",
            side_effect=subprocess.CalledProcessError(1, ["tee"]),
        )
        reload = mocker.patch(f"{MODULE}.systemd_reload")

        with pytest.raises(ServiceWriteError) as exc_info:
            ServiceRegistrar(manifest, mock_logger).register(descriptors)

        assert exc_info.value.unit == "app-frontend-build.service"
        reload.assert_not_called()

    def test_reload_failure(self, mocker, manifest, mock_logger, descriptors):
        FakeSystemd(mocker)
        mocker.patch(
            f"{MODULE}.systemd_reload",
            side_effect=subprocess.CalledProcessError(1, ["systemctl", "daemon-reload"]),
        )

        with pytest.raises(DaemonReloadError):
            ServiceRegistrar(manifest, mock_logger).register(descriptors)

    def test_enable_failure(self, mocker, manifest, mock_logger, descriptors):
        FakeSystemd(mocker)
        mocker.patch(
            f"{MODULE}.systemctl",
            side_effect=subprocess.CalledProcessError(1, ["systemctl", "enable"]),
        )

        with pytest.raises(ServiceEnableError):
            ServiceRegistrar(manifest, mock_logger).register(descriptors)

    def test_start_failure_is_not_retried(self, mocker, manifest, mock_logger, descriptors):
        systemd = FakeSystemd(mocker, enabled={"app-frontend-build.service"})
        calls = []

        def fail_start(verb, unit, *args, **kwargs):
            calls.append((verb, unit))
            raise subprocess.CalledProcessError(1, ["systemctl", verb, unit])

        mocker.patch(f"{MODULE}.systemctl", side_effect=fail_start)

        with pytest.raises(ServiceStartError, match="Starting unit failed for app-frontend-build.service"):
            ServiceRegistrar(manifest, mock_logger).register(descriptors)

        assert calls == [("start", "app-frontend-build.service")]
        assert systemd.reload.call_count == 1

    def test_builds_descriptors_when_context_has_none(self, mocker, manifest, mock_logger):
        systemd = FakeSystemd(mocker)

        ServiceRegistrar(manifest, mock_logger).run({})

        assert ("write", "app-backend.service") in systemd.actions
