"""
Tests for the build use case — the full slice from request to report.
"""

from pathlib import Path

import pytest

from jaxbuild.adapters.mock import MockAdapter
from jaxbuild.adapters.registry import AdapterRegistry
from jaxbuild.core.detection.hardware import StaticProbe
from jaxbuild.core.engine.executor import INSTALL_SECONDARY
from jaxbuild.core.models.target import HostCpuFamily
from jaxbuild.core.services.assembler import DEBUG_PARAMS, disk_cache_param
from jaxbuild.core.use_cases.build import BuildRequest, resolve_targets, run_build


@pytest.fixture
def mock() -> MockAdapter:
    return MockAdapter()


@pytest.fixture
def registry(mock: MockAdapter) -> AdapterRegistry:
    registry = AdapterRegistry()
    registry.set_mock_mode(True, mock_adapter=mock)
    return registry


def _run(request, settings, environ, registry, tmp_path, machine="x86_64", **kwargs):
    kwargs.setdefault("probe", StaticProbe(["8.6", "7.5", "8.6"]))
    return run_build(
        request,
        settings,
        environ,
        machine,
        project_root=tmp_path,
        registry=registry,
        **kwargs,
    )


class TestRunBuild:
    def test_jaxlib_only_without_cache(self, settings, environ, registry, mock, tmp_path: Path):
        request = BuildRequest(sm="7.0", jaxlib_only=True)
        result = _run(request, settings, environ, registry, tmp_path)

        assert result.ok, result.error
        assert result.targets.render() == "7.0"
        assert result.configuration.extras == []
        assert result.configuration.disk_cache is None
        assert INSTALL_SECONDARY not in result.plan.phase_names
        assert "install_secondary:package" not in mock.executed_ids

        (build,) = [c for c in mock.call_log if c.action.id == "configure_build:build"]
        command = build.params["command"]
        assert "--cuda_compute_capabilities=7.0" in command
        assert "--cuda_version=12.2" in command
        assert "--cudnn_version=8" in command
        assert build.params["env"]["TF_CUBLAS_VERSION"] == "12"
        assert build.params["env"]["TF_NCCL_VERSION"] == "2"

    def test_local_detection(self, settings, environ, registry, tmp_path: Path):
        result = _run(BuildRequest(), settings, environ, registry, tmp_path)
        assert result.targets.render() == "7.5,8.6"
        assert result.configuration.compute_capabilities == "7.5,8.6"

    def test_extras_order(self, settings, environ, registry, tmp_path: Path):
        cache = tmp_path / "cache"
        cache.mkdir()
        settings = settings.model_copy(update={"disk_cache_dir": str(cache)})
        request = BuildRequest(
            sm="8.0",
            debug=True,
            build_params=["--bazel_options=--config=avx_posix", "--bazel_options=-c"],
        )
        result = _run(request, settings, environ, registry, tmp_path)
        assert result.configuration.extras == [
            "--bazel_options=--config=avx_posix",
            "--bazel_options=-c",
            disk_cache_param(str(cache)),
            *DEBUG_PARAMS,
        ]

    def test_full_build_phases(self, settings, environ, registry, tmp_path: Path):
        result = _run(BuildRequest(sm="8.0", clean=True), settings, environ, registry, tmp_path)
        assert result.report.completed_phases == [
            "uninstall_previous",
            "configure_build",
            "install_primary",
            "install_secondary",
            "finalize_tool",
            "clean",
        ]

    def test_tf_dir_override(self, settings, environ, registry, tmp_path: Path):
        request = BuildRequest(sm="8.0", tf_dir="/src/tensorflow")
        result = _run(request, settings, environ, registry, tmp_path)
        assert result.configuration.tf_dir == "/src/tensorflow"
        assert (
            "--bazel_options=--override_repository=org_tensorflow=/src/tensorflow"
            in result.configuration.build_command()
        )

    def test_arm64_caps_jobs(self, settings, environ, registry, tmp_path: Path):
        result = _run(
            BuildRequest(sm="all"), settings, environ, registry, tmp_path,
            machine="aarch64", cpu_count=72,
        )
        assert result.host_family is HostCpuFamily.ARM64
        assert result.targets.render() == "8.0,8.6,8.9,9.0"
        assert result.configuration.max_jobs == 40
        assert result.toolchain.cudnn_paths == "/usr/lib/aarch64-linux-gnu"
        assert result.toolchain.cc_opt_flags == "-march=armv8-a"

    def test_amd64_no_job_cap(self, settings, environ, registry, tmp_path: Path):
        result = _run(BuildRequest(sm="8.0"), settings, environ, registry, tmp_path, cpu_count=72)
        assert result.configuration.max_jobs is None

    def test_targetarch_overrides_machine(self, settings, environ, registry, tmp_path: Path):
        environ = {**environ, "TARGETARCH": "arm64"}
        result = _run(BuildRequest(sm="8.0"), settings, environ, registry, tmp_path, cpu_count=72)
        assert result.host_family is HostCpuFamily.ARM64
        assert result.configuration.max_jobs is None

    def test_mock_request(self, settings, environ, tmp_path: Path):
        result = run_build(BuildRequest(mock=True), settings, environ, "x86_64", project_root=tmp_path)
        assert result.ok, result.error
        assert result.targets.render() == "8.0"
        assert all("[mock]" in r.output for r in result.report.receipts)

    def test_dry_run(self, settings, environ, registry, mock, tmp_path: Path):
        result = _run(BuildRequest(sm="8.0", dry_run=True), settings, environ, registry, tmp_path)
        assert result.ok
        assert mock.call_count == 0


class TestRunBuildFailures:
    @pytest.mark.parametrize("action_id", [
        "configure_build:build",
        "install_primary:wheel",
        "install_secondary:package",
        "finalize_tool:relocate",
    ])
    def test_phase_failure_names_phase(self, settings, environ, registry, mock, tmp_path, action_id):
        mock.set_failure(action_id, error="ERROR: something broke")
        result = _run(BuildRequest(sm="8.0"), settings, environ, registry, tmp_path)

        phase = action_id.split(":")[0]
        assert not result.ok
        assert result.error_kind == "ExternalProcessFailed"
        assert result.failed_phase == phase
        assert result.error == f"Phase '{phase}' failed: ERROR: something broke"

    def test_uninstall_failure_is_not_fatal(self, settings, environ, registry, mock, tmp_path):
        mock.set_failure("uninstall_previous:pip")
        result = _run(BuildRequest(sm="8.0"), settings, environ, registry, tmp_path)
        assert result.ok
        assert result.report.warnings

    def test_probe_failure_stops_before_pipeline(self, settings, environ, registry, mock, tmp_path):
        probe = StaticProbe(["8.6", "7.5"], fail_at=1)
        result = _run(BuildRequest(), settings, environ, registry, tmp_path, probe=probe)
        assert result.error_kind == "ProbeFailed"
        assert result.targets is None
        assert result.report is None
        assert mock.call_count == 0

    def test_no_device(self, settings, environ, registry, tmp_path):
        result = _run(BuildRequest(), settings, environ, registry, tmp_path, probe=StaticProbe())
        assert result.error_kind == "ProbeFailed"

    def test_malformed_sm(self, settings, environ, registry, tmp_path):
        result = _run(BuildRequest(sm="8.6,abc"), settings, environ, registry, tmp_path)
        assert result.error_kind == "MalformedInput"
        assert "'abc'" in result.error

    def test_unknown_arch(self, settings, environ, registry, tmp_path):
        result = _run(BuildRequest(sm="8.0"), settings, environ, registry, tmp_path, machine="ppc64le")
        assert result.error_kind == "MalformedInput"

    def test_missing_cudnn_version(self, settings, registry, mock, tmp_path):
        result = _run(BuildRequest(sm="8.0"), settings, {"NCCL_VERSION": "2.19.3"}, registry, tmp_path)
        assert result.error_kind == "MissingVersionInfo"
        assert "CUDNN_VERSION" in result.error
        assert mock.call_count == 0

    def test_missing_toolchain(self, settings, environ, registry, tmp_path):
        settings = settings.model_copy(update={"cuda_home": str(tmp_path / "absent")})
        result = _run(BuildRequest(sm="8.0"), settings, environ, registry, tmp_path)
        assert result.error_kind == "ToolchainNotFound"

    def test_missing_tool_fails_fast(self, settings, environ, tmp_path):
        shell = MockAdapter(adapter_name="shell", available=False)
        registry = AdapterRegistry()
        registry.register(MockAdapter(adapter_name="pip"))
        registry.register(shell)
        registry.register(MockAdapter(adapter_name="filesystem"))

        result = _run(BuildRequest(sm="8.0"), settings, environ, registry, tmp_path)

        assert result.error_kind == "ExternalProcessFailed"
        assert result.failed_phase == "configure_build"
        assert "shell" in result.error
        assert shell.call_count == 0

    def test_to_dict(self, settings, environ, registry, mock, tmp_path):
        mock.set_failure("configure_build:build", error="boom")
        data = _run(BuildRequest(sm="8.0"), settings, environ, registry, tmp_path).to_dict()
        assert data["ok"] is False
        assert data["error_kind"] == "ExternalProcessFailed"
        assert data["failed_phase"] == "configure_build"
        assert data["compute_capabilities"] == "8.0"
        assert data["host_family"] == "amd64"


class TestResolveTargets:
    def test_explicit(self, settings):
        family, targets = resolve_targets("9.0,8.0", settings, {}, "x86_64")
        assert family is HostCpuFamily.AMD64
        assert targets.render() == "8.0,9.0"

    def test_catalog_script(self, settings, tmp_path: Path):
        script = tmp_path / "nvarch.sh"
        script.write_text("#!/bin/sh\necho 9.0,8.0\n")
        script.chmod(0o755)
        settings = settings.model_copy(update={"catalog_script": str(script)})
        _, targets = resolve_targets("all", settings, {}, "x86_64")
        assert targets.render() == "8.0,9.0"
