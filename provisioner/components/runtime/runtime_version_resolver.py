"""
Runtime version resolver module.

Reads the runtime version each project asks for from its manifest
(``engines.<runtime>`` in package.json) and makes sure nvm has that version
installed, with the first project's version set as the default.
"""

import json
import logging
import shlex
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from common.command_utils import build_command_env, run_command
from provisioner.base_step import ProvisioningStep
from provisioner.config_models import ProvisioningManifest
from provisioner.errors import VersionResolutionError

NULL_SENTINEL = "null"
NOT_INSTALLED_MARKER = "N/A"

_ABSENT = object()


class RuntimeVersionResolver(ProvisioningStep):
    """
    Resolver and installer for the project runtime (Node.js through nvm).

    A manifest without the engines entry falls back to the default version.
    A manifest whose entry is explicitly null is a configuration defect and
    fails the run instead of falling back.
    """

    name = "runtime"
    description = "Resolve and install runtime versions"

    def __init__(
        self,
        manifest: ProvisioningManifest,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(manifest, logger)
        self.nvm_dir = manifest.effective_nvm_dir

    @property
    def nvm_script(self) -> Path:
        return self.nvm_dir / "nvm.sh"

    def resolve(self, manifest_path: Union[str, Path]) -> str:
        """
        Returns the runtime version required by the manifest at ``manifest_path``.

        Raises:
            VersionResolutionError: The manifest cannot be read or parsed, or
                the engines entry is present but null.
        """
        manifest_path = Path(manifest_path)
        runtime = self.manifest.runtime
        try:
            with open(manifest_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise VersionResolutionError(
                f"Manifest {manifest_path} not found."
            ) from e
        except (OSError, json.JSONDecodeError) as e:
            raise VersionResolutionError(
                f"Could not read manifest {manifest_path}: {e}"
            ) from e

        engines = data.get("engines", _ABSENT) if isinstance(data, dict) else _ABSENT
        value = engines.get(runtime, _ABSENT) if isinstance(engines, dict) else _ABSENT

        if value is _ABSENT:
            version = self.manifest.default_runtime_version
            self.log(
                f"{self.symbols.get('info', '')} No engines.{runtime} in {manifest_path}; using default version {version}."
            )
            return version

        if value is None or str(value).strip() in ("", NULL_SENTINEL):
            self.log(
                f"{self.symbols.get('error', '')} Error: Required {runtime} version not specified in {manifest_path}.",
                "error",
            )
            raise VersionResolutionError(
                f"engines.{runtime} in {manifest_path} is null."
            )

        version = str(value).strip()
        self.log(f"{self.symbols.get('info', '')} Required {runtime} version for {manifest_path.parent}: {version}")
        return version

    def resolve_all(self) -> Dict[str, str]:
        """Resolve the version of every configured project, keyed by project name."""
        return {
            project.name: self.resolve(project.manifest_path)
            for project in self.manifest.projects
        }

    def _nvm(
        self, args: str, check: bool = False
    ) -> subprocess.CompletedProcess:
        script = f'. "{self.nvm_script}" && nvm {args}'
        return run_command(
            ["bash", "-c", script],
            self.manifest,
            check=check,
            capture_output=True,
            current_logger=self.logger,
            env=build_command_env(self.manifest, {"NVM_DIR": str(self.nvm_dir)}),
        )

    def _nvm_output(self, args: str) -> Optional[str]:
        try:
            result = self._nvm(args)
        except OSError:
            return None
        output = (result.stdout or "").strip()
        if result.returncode != 0 or not output:
            return None
        # nvm may print notices first; the answer is the last line
        return output.splitlines()[-1].strip()

    def is_nvm_installed(self) -> bool:
        return self.nvm_script.is_file()

    def ensure_nvm(self) -> bool:
        """
        Install nvm when it is missing.

        Returns:
            True if nvm was installed by this call.

        Raises:
            VersionResolutionError: The nvm install script could not be fetched or run.
        """
        if self.is_nvm_installed():
            self.log(f"{self.symbols.get('success', '')} nvm (Node Version Manager) is already installed.")
            return False

        self.log(
            f"{self.symbols.get('package', '')} nvm (Node Version Manager) is not installed. Installing nvm..."
        )
        try:
            script = run_command(
                ["curl", "-fsSL", self.manifest.nvm_install_url],
                self.manifest,
                capture_output=True,
                current_logger=self.logger,
            )
            run_command(
                ["bash"],
                self.manifest,
                cmd_input=script.stdout,
                capture_output=True,
                current_logger=self.logger,
                env=build_command_env(self.manifest, {"NVM_DIR": str(self.nvm_dir)}),
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise VersionResolutionError(f"Failed to install nvm: {e}") from e

        if not self.is_nvm_installed():
            raise VersionResolutionError(
                f"nvm install finished but {self.nvm_script} does not exist."
            )
        self.log(f"{self.symbols.get('success', '')} nvm installed successfully.", "success")
        return True

    def installed_version(self, version: str) -> Optional[str]:
        """Full installed version matching ``version`` (e.g. 'v16.20.2'), or None."""
        if not self.is_nvm_installed():
            return None
        output = self._nvm_output(f"version {shlex.quote(version)}")
        if not output or output == NOT_INSTALLED_MARKER:
            return None
        return output

    def is_version_installed(self, version: str) -> bool:
        return self.installed_version(version) is not None

    def is_active(self, version: str) -> bool:
        installed = self.installed_version(version)
        return installed is not None and installed == self.installed_version("default")

    def install(self, version: str) -> bool:
        """
        Ensure nvm, install ``version`` if missing. Returns True if anything changed.

        Raises:
            VersionResolutionError: nvm or the version could not be installed.
        """
        changed = self.ensure_nvm()
        if self.is_version_installed(version):
            self.log(f"{self.symbols.get('success', '')} {self.manifest.runtime} {version} is already installed.")
            return changed

        self.log(f"{self.symbols.get('package', '')} Installing {self.manifest.runtime} {version} with nvm...")
        try:
            self._nvm(f"install {shlex.quote(version)}", check=True)
        except (subprocess.CalledProcessError, OSError) as e:
            raise VersionResolutionError(
                f"Failed to install {self.manifest.runtime} {version}: {e}"
            ) from e
        self.log(f"{self.symbols.get('success', '')} {self.manifest.runtime} {version} installed.", "success")
        return True

    def activate(self, version: str) -> bool:
        """Make ``version`` the nvm default unless it already is. Returns True if changed."""
        if self.is_active(version):
            self.log(f"{self.symbols.get('info', '')} {self.manifest.runtime} {version} is already the default.")
            return False
        try:
            self._nvm(f"alias default {shlex.quote(version)}", check=True)
        except (subprocess.CalledProcessError, OSError) as e:
            raise VersionResolutionError(
                f"Failed to activate {self.manifest.runtime} {version}: {e}"
            ) from e
        self.log(f"{self.symbols.get('success', '')} {self.manifest.runtime} {version} set as default.", "success")
        return True

    def bin_dir(self, version: str) -> Optional[Path]:
        """Directory holding the runtime binary for ``version``, if installed."""
        installed = self.installed_version(version)
        if installed is None:
            return None
        return self.nvm_dir / "versions" / self.manifest.runtime / installed / "bin"

    def wrap(self, version: Optional[str], command: List[str]) -> List[str]:
        """Return ``command`` rewritten to run under ``version`` through nvm."""
        if version is None:
            return list(command)
        return [
            "bash",
            "-c",
            f'. "{self.nvm_script}" && nvm exec --silent {shlex.quote(version)} {shlex.join(command)}',
        ]

    def is_satisfied(self, context: Dict[str, Any]) -> bool:
        versions = list(self.resolve_all().values())
        if not versions:
            return True
        return all(self.is_version_installed(v) for v in versions) and self.is_active(versions[0])

    def _publish_versions(
        self, context: Dict[str, Any], versions: Dict[str, str]
    ) -> None:
        context["runtime_versions"] = versions
        context["runtime_bin_dirs"] = {
            name: self.bin_dir(version) for name, version in versions.items()
        }

    def publish(self, context: Dict[str, Any]) -> None:
        self._publish_versions(context, self.resolve_all())

    def run(self, context: Dict[str, Any]) -> Dict[str, str]:
        """Resolve every project version, install them and activate the first."""
        self.log(f"{self.symbols.get('step', '')} Checking for required {self.manifest.runtime} versions from project manifests...")
        versions = self.resolve_all()
        for version in dict.fromkeys(versions.values()):
            self.install(version)
        if versions:
            self.activate(next(iter(versions.values())))
        self._publish_versions(context, versions)
        return versions
