# provisioner/orchestrator.py
# -*- coding: utf-8 -*-
"""
The provisioning pipeline.

Declares the fixed step order once and runs it on top of the generic
common.orchestrator.Orchestrator: packages, runtime, dependencies,
database, migrations, service descriptors, services, readiness.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from common.orchestrator import Orchestrator, PipelineResult
from provisioner.base_step import ProvisioningStep
from provisioner.components.capability.probe import (
    CapabilityProbe,
    DebianCapabilityProbe,
)
from provisioner.components.database.database_provisioner import (
    DatabaseProvisioner,
)
from provisioner.components.dependencies.dependency_installer import (
    DependencyInstaller,
)
from provisioner.components.migrations.schema_migrator import SchemaMigrator
from provisioner.components.packages.package_installer import PackageInstaller
from provisioner.components.readiness.readiness_probe import ReadinessProbe
from provisioner.components.runtime.runtime_version_resolver import (
    RuntimeVersionResolver,
)
from provisioner.components.services.descriptor_builder import (
    ServiceDescriptorBuilder,
    render,
)
from provisioner.components.services.service_registrar import ServiceRegistrar
from provisioner.config_models import ProvisioningManifest
from provisioner.errors import ProvisioningError
from provisioner.state_ledger import StateLedger

module_logger = logging.getLogger(__name__)

STEP_CLASSES = (
    PackageInstaller,
    RuntimeVersionResolver,
    DependencyInstaller,
    DatabaseProvisioner,
    SchemaMigrator,
    ServiceDescriptorBuilder,
    ServiceRegistrar,
    ReadinessProbe,
)
STEP_NAMES: List[str] = [cls.name for cls in STEP_CLASSES]


class ProvisioningOrchestrator:
    """Builds the provisioning steps and drives them in order."""

    def __init__(
        self,
        manifest: ProvisioningManifest,
        probe: Optional[CapabilityProbe] = None,
        logger: Optional[logging.Logger] = None,
        ledger: Optional[StateLedger] = None,
    ):
        self.manifest = manifest
        self.logger = logger or module_logger
        self.probe = probe or DebianCapabilityProbe(manifest, self.logger)
        self.ledger = ledger

        self.runtime = RuntimeVersionResolver(manifest, self.logger)
        self.descriptor_builder = ServiceDescriptorBuilder(manifest, self.logger)
        self.steps: List[ProvisioningStep] = [
            PackageInstaller(manifest, self.probe, logger=self.logger),
            self.runtime,
            DependencyInstaller(manifest, self.runtime, self.logger),
            DatabaseProvisioner(manifest, self.probe, logger=self.logger),
            SchemaMigrator(manifest, self.runtime, self.logger),
            self.descriptor_builder,
            ServiceRegistrar(manifest, self.logger),
            ReadinessProbe(manifest, self.logger),
        ]

    def step_names(self) -> List[str]:
        return [step.name for step in self.steps]

    def get_step(self, name: str) -> ProvisioningStep:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(name)

    def _run_step(self, step: ProvisioningStep, context: Dict[str, Any]) -> Any:
        result = step.run(context)
        if self.ledger is not None:
            self.ledger.mark_completed(step.name)
        return result

    def _skip_completed(
        self, step: ProvisioningStep, orchestrator: Orchestrator
    ) -> Callable[[], bool]:
        def skip() -> bool:
            if self.ledger is None or not self.ledger.is_completed(step.name):
                return False
            step.publish(orchestrator.context)
            return True

        return skip

    def run(self, resume: bool = False) -> PipelineResult:
        """
        Run every step in order and stop at the first failure.

        Args:
            resume: Skip steps the ledger recorded as completed for this
                manifest. Every step is re-probed otherwise.
        """
        orchestrator = Orchestrator(self.manifest, self.logger)
        for step in self.steps:
            orchestrator.add_task(
                step.name,
                self._run_step,
                args=[step],
                skip_if=self._skip_completed(step, orchestrator) if resume else None,
            )

        result = orchestrator.run()
        if result.succeeded and self.ledger is not None:
            self.ledger.reset()
        return result

    def status(self) -> Dict[str, Optional[bool]]:
        """
        Evaluate every step's idempotency predicate without changing the host.

        A step whose check itself fails (unreadable manifest, missing tool)
        reports None.
        """
        context: Dict[str, Any] = {}
        report: Dict[str, Optional[bool]] = {}
        for step in self.steps:
            try:
                report[step.name] = step.is_satisfied(context)
                step.publish(context)
            except ProvisioningError as e:
                self.logger.warning(f"Could not evaluate step '{step.name}': {e}")
                report[step.name] = None
        return report

    def render(self) -> Dict[str, str]:
        """Rendered unit files keyed by file name, without touching the host."""
        context: Dict[str, Any] = {}
        self.runtime.publish(context)
        return {
            descriptor.unit_file_name: render(descriptor)
            for descriptor in self.descriptor_builder.build_all(context)
        }
