"""
Engine executor — plan and run the build pipeline.

    uninstall_previous → configure_build → install_primary
        → [install_secondary] → finalize_tool → [clean]

Each phase is a list of Actions dispatched through the adapter
registry. Fatal phases stop the pipeline on the first failed receipt;
best-effort phases (uninstall_previous, clean) log failures as
warnings and keep going. Nothing is retried: a failed native build
needs an operator, not another attempt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from jaxbuild.adapters.registry import AdapterRegistry
from jaxbuild.core.models.action import Action, Receipt
from jaxbuild.core.models.build import BuildConfiguration
from jaxbuild.core.models.settings import BuildSettings

logger = logging.getLogger(__name__)

UNINSTALL_PREVIOUS = "uninstall_previous"
CONFIGURE_BUILD = "configure_build"
INSTALL_PRIMARY = "install_primary"
INSTALL_SECONDARY = "install_secondary"
FINALIZE_TOOL = "finalize_tool"
CLEAN = "clean"

# Bazel binary as relocated into the source tree
LOCAL_BAZEL = "bazel"


class PhasePolicy(str, Enum):
    FATAL = "fatal"
    BEST_EFFORT = "best_effort"


@dataclass
class Phase:
    """A named group of actions sharing one failure policy."""

    name: str
    policy: PhasePolicy = PhasePolicy.FATAL
    actions: list[Action] = field(default_factory=list)

    def add(self, step: str, adapter: str, name: str = "", **params) -> Action:
        action = Action(
            id=f"{self.name}:{step}",
            name=name or step,
            adapter=adapter,
            phase=self.name,
            params=params,
        )
        self.actions.append(action)
        return action


@dataclass
class PipelinePlan:
    """The ordered phases of one build."""

    phases: list[Phase] = field(default_factory=list)

    @property
    def phase_names(self) -> list[str]:
        return [p.name for p in self.phases]

    @property
    def total_actions(self) -> int:
        return sum(len(p.actions) for p in self.phases)

    def get(self, name: str) -> Phase | None:
        for phase in self.phases:
            if phase.name == name:
                return phase
        return None


@dataclass
class PipelineReport:
    """Result of executing a plan."""

    receipts: list[Receipt] = field(default_factory=list)
    completed_phases: list[str] = field(default_factory=list)
    failed_phase: str | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed_phase is None

    @property
    def status(self) -> str:
        if not self.ok:
            return "failed"
        return "partial" if self.warnings else "ok"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "completed_phases": self.completed_phases,
            "failed_phase": self.failed_phase,
            "error": self.error,
            "warnings": self.warnings,
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }


# ── Planning ────────────────────────────────────────────────────


def plan_pipeline(
    configuration: BuildConfiguration,
    settings: BuildSettings,
    *,
    clean: bool = False,
    use_sudo: bool = False,
) -> PipelinePlan:
    """Lay out the pipeline phases for a build configuration.

    Args:
        configuration: Assembled build parameters.
        settings: Host layout (python, dist dir, install dir, caches).
        clean: Append the clean phase.
        use_sudo: Run the uninstall through sudo (not running as root).
    """
    plan = PipelinePlan()
    python = settings.python

    packages = [settings.library_package]
    if not configuration.jaxlib_only:
        packages = [settings.package, settings.library_package]

    uninstall = Phase(UNINSTALL_PREVIOUS, PhasePolicy.BEST_EFFORT)
    uninstall.add(
        "pip", "pip", f"Uninstall {' '.join(packages)}",
        operation="uninstall", python=python, packages=packages, sudo=use_sudo,
    )
    plan.phases.append(uninstall)

    build = Phase(CONFIGURE_BUILD)
    build.add(
        "build", "shell", "Configure and build jaxlib",
        command=configuration.build_command(python),
        env=configuration.build_environment(),
        stream=True,
    )
    plan.phases.append(build)

    primary = Phase(INSTALL_PRIMARY)
    primary.add(
        "wheel", "pip", f"Install {settings.library_package} wheel",
        operation="install", python=python,
        targets=[f"{settings.dist_dir}/*.whl"], force_reinstall=True,
    )
    plan.phases.append(primary)

    if not configuration.jaxlib_only:
        secondary = Phase(INSTALL_SECONDARY)
        secondary.add(
            "package", "pip", f"Install {settings.package} from source tree",
            operation="install", python=python, targets=["."],
        )
        plan.phases.append(secondary)

    finalize = Phase(FINALIZE_TOOL)
    finalize.add(
        "relocate", "filesystem", "Move the downloaded Bazel into place",
        operation="relocate", source="build/bazel*", dest=LOCAL_BAZEL, mode=0o755,
    )
    finalize.add(
        "self_check", "shell", "Run Bazel once",
        command=[f"./{LOCAL_BAZEL}"],
    )
    finalize.add(
        "install", "filesystem", f"Install Bazel into {settings.install_dir}",
        operation="install", source=LOCAL_BAZEL, dest=settings.install_dir, mode=0o755,
    )
    plan.phases.append(finalize)

    if clean:
        plan.phases.append(_clean_phase(settings))

    return plan


def _clean_phase(settings: BuildSettings) -> Phase:
    phase = Phase(CLEAN, PhasePolicy.BEST_EFFORT)
    phase.add("dist", "filesystem", operation="remove", path=settings.dist_dir)
    phase.add("bazel_binary", "filesystem", operation="remove", path=LOCAL_BAZEL)
    phase.add(
        "bazel_expunge", "shell", "Expunge the Bazel output base",
        command=[settings.bazel_path, "clean", "--expunge"],
    )
    phase.add(
        "configure_bazelrc", "filesystem",
        operation="remove", path=settings.configure_bazelrc, missing_ok=False,
    )
    phase.add("bazel_cache", "filesystem", operation="remove", path=settings.bazel_cache_dir)
    phase.add("scratch", "filesystem", operation="clear", path=settings.scratch_dir)
    return phase


# ── Execution ───────────────────────────────────────────────────


def execute_pipeline(
    plan: PipelinePlan,
    registry: AdapterRegistry,
    project_root: str = ".",
    dry_run: bool = False,
) -> PipelineReport:
    """Run every phase of a plan in order.

    A failed receipt in a fatal phase stops the pipeline: no further
    action, in that phase or any later one, is dispatched. The report
    names the phase and carries the adapter's error unmodified.

    Before anything runs, a fatal phase whose adapter reports its tool
    missing fails the pipeline with no action dispatched at all.

    Args:
        plan: The pipeline plan.
        registry: Adapter registry for dispatch.
        project_root: JAX source tree the build runs in.
        dry_run: If True, validate but don't execute.
    """
    report = PipelineReport()

    blocked = _first_blocked_phase(plan, registry)
    if blocked:
        report.failed_phase, report.error = blocked
        logger.error("Phase '%s' cannot run: %s", *blocked)
        return report

    for phase in plan.phases:
        logger.info("▶ %s", phase.name)
        for action in phase.actions:
            receipt = registry.execute_action(
                action=action,
                project_root=project_root,
                dry_run=dry_run,
            )
            report.receipts.append(receipt)

            status_marker = "✓" if receipt.ok else "✗" if receipt.failed else "⊘"
            logger.info("%s %s → %s", status_marker, action.id, receipt.status)

            if not receipt.failed:
                continue

            if phase.policy is PhasePolicy.BEST_EFFORT:
                warning = f"{action.id}: {receipt.error}"
                logger.warning("Ignoring failure in %s", warning)
                report.warnings.append(warning)
                continue

            logger.error("Phase '%s' failed: %s", phase.name, receipt.error)
            report.failed_phase = phase.name
            report.error = receipt.error
            return report

        report.completed_phases.append(phase.name)

    return report


def _first_blocked_phase(
    plan: PipelinePlan,
    registry: AdapterRegistry,
) -> tuple[str, str] | None:
    """First fatal phase needing an adapter whose tool is missing."""
    for phase in plan.phases:
        if phase.policy is not PhasePolicy.FATAL:
            continue
        missing = registry.unavailable(a.adapter for a in phase.actions)
        if missing:
            return phase.name, f"Not available on this host: {', '.join(missing)}"
    return None
