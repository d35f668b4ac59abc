"""
Build use case — configure, build, and install JAX end to end.

The full vertical slice from the command line to installed packages:

    host family → resolve targets → locate toolchain → assemble
        → plan phases → execute → BuildResult

Every input from the process environment (TARGETARCH, CUDNN_VERSION,
NCCL_VERSION, ``uname -m``, CPU count, root or not) arrives as an
argument, so each step can be exercised without touching the host.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from jaxbuild.adapters.registry import AdapterRegistry
from jaxbuild.core.detection.hardware import CapabilityProbe, NvidiaSmiProbe, StaticProbe
from jaxbuild.core.detection.toolchain import locate
from jaxbuild.core.engine.executor import (
    PipelinePlan,
    PipelineReport,
    execute_pipeline,
    plan_pipeline,
)
from jaxbuild.core.errors import BuildError, ExternalProcessFailedError
from jaxbuild.core.models.build import BuildConfiguration
from jaxbuild.core.models.settings import BuildSettings
from jaxbuild.core.models.target import HostCpuFamily, TargetMode, TargetSet
from jaxbuild.core.models.toolchain import ToolchainConfig
from jaxbuild.core.services.assembler import assemble, max_build_jobs
from jaxbuild.core.services.catalog import ArchitectureCatalog, catalog_from_settings
from jaxbuild.core.services.resolver import resolve

logger = logging.getLogger(__name__)

# What the static probe reports when running with --mock
MOCK_CAPABILITIES = ("8.0",)


@dataclass
class BuildRequest:
    """What the operator asked for on the command line."""

    sm: str | None = None
    clean: bool = False
    debug: bool = False
    jaxlib_only: bool = False
    build_params: list[str] = field(default_factory=list)
    tf_dir: str | None = None
    dry_run: bool = False
    mock: bool = False


@dataclass
class BuildResult:
    """Result of a build invocation."""

    host_family: HostCpuFamily | None = None
    targets: TargetSet | None = None
    toolchain: ToolchainConfig | None = None
    configuration: BuildConfiguration | None = None
    plan: PipelinePlan | None = None
    report: PipelineReport | None = None
    error: str | None = None
    error_kind: str | None = None
    failed_phase: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {"ok": self.ok}
        if self.error:
            result["error"] = self.error
            result["error_kind"] = self.error_kind
            if self.failed_phase:
                result["failed_phase"] = self.failed_phase
        if self.host_family:
            result["host_family"] = self.host_family.value
        if self.targets:
            result["compute_capabilities"] = self.targets.render()
        if self.configuration:
            result["configuration"] = self.configuration.model_dump(mode="json")
        if self.plan:
            result["phases"] = self.plan.phase_names
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def default_probe(mock: bool = False) -> CapabilityProbe:
    return StaticProbe(MOCK_CAPABILITIES) if mock else NvidiaSmiProbe()


def default_registry(mock: bool = False) -> AdapterRegistry:
    """Registry with the pip, shell, and filesystem adapters."""
    if mock:
        return AdapterRegistry(mock_mode=True)

    from jaxbuild.adapters.languages.python import PipAdapter
    from jaxbuild.adapters.shell.command import ShellCommandAdapter
    from jaxbuild.adapters.shell.filesystem import FilesystemAdapter

    registry = AdapterRegistry()
    registry.register(PipAdapter())
    registry.register(ShellCommandAdapter())
    registry.register(FilesystemAdapter())
    return registry


def resolve_targets(
    sm: str | None,
    settings: BuildSettings,
    environ: Mapping[str, str],
    machine: str,
    *,
    probe: CapabilityProbe | None = None,
    catalog: ArchitectureCatalog | None = None,
) -> tuple[HostCpuFamily, TargetSet]:
    """Detect the host family and resolve a --sm value. Raises BuildError."""
    host_family = HostCpuFamily.detect(machine, environ.get("TARGETARCH"))
    targets = resolve(
        TargetMode.parse(sm),
        host_family,
        probe=probe or default_probe(),
        catalog=catalog or catalog_from_settings(settings),
    )
    return host_family, targets


def run_build(
    request: BuildRequest,
    settings: BuildSettings,
    environ: Mapping[str, str],
    machine: str,
    *,
    project_root: Path | None = None,
    cpu_count: int | None = None,
    use_sudo: bool = False,
    probe: CapabilityProbe | None = None,
    catalog: ArchitectureCatalog | None = None,
    registry: AdapterRegistry | None = None,
) -> BuildResult:
    """Run the whole build pipeline.

    Args:
        request: Command-line choices.
        settings: Host layout and defaults.
        environ: Environment mapping (TARGETARCH, CUDNN_VERSION, NCCL_VERSION).
        machine: ``uname -m`` of the host.
        project_root: JAX source tree (default: cwd).
        cpu_count: Host CPUs, for the arm64 job cap.
        use_sudo: Uninstall through sudo.
        probe: Optional capability probe (default: nvidia-smi, static with --mock).
        catalog: Optional architecture catalog (default: from settings).
        registry: Optional pre-configured adapter registry.

    Returns:
        BuildResult; ``error`` is set when any fatal step failed.
    """
    result = BuildResult()
    project_root = project_root or Path.cwd()

    if request.tf_dir:
        settings = settings.model_copy(update={"tf_dir": request.tf_dir})
    logger.info("TFDIR: %s", settings.tf_dir)

    try:
        result.host_family, result.targets = resolve_targets(
            request.sm,
            settings,
            environ,
            machine,
            probe=probe or default_probe(request.mock),
            catalog=catalog,
        )

        result.toolchain = locate(settings, environ, machine, result.host_family)

        result.configuration = assemble(
            result.targets,
            result.toolchain,
            request.build_params,
            debug=request.debug,
            cache_path=settings.disk_cache_dir,
            jaxlib_only=request.jaxlib_only,
            settings=settings,
            max_jobs=max_build_jobs(
                machine,
                cpu_count,
                settings.max_build_jobs,
                targetarch=environ.get("TARGETARCH"),
            ),
        )

        result.plan = plan_pipeline(
            result.configuration,
            settings,
            clean=request.clean,
            use_sudo=use_sudo,
        )

        if registry is None:
            registry = default_registry(request.mock)

        result.report = execute_pipeline(
            result.plan,
            registry,
            project_root=str(project_root),
            dry_run=request.dry_run,
        )
        if not result.report.ok:
            raise ExternalProcessFailedError(
                result.report.failed_phase or "unknown",
                result.report.error or "",
            )

    except ExternalProcessFailedError as e:
        result.error = str(e)
        result.error_kind = e.kind
        result.failed_phase = e.phase
    except BuildError as e:
        result.error = str(e)
        result.error_kind = e.kind

    return result
