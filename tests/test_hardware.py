"""
Tests for GPU probes and the architecture catalogs.
"""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from jaxbuild.core.detection.hardware import NvidiaSmiProbe, ProbeError, StaticProbe
from jaxbuild.core.models.target import ArchitectureIdentifier, HostCpuFamily
from jaxbuild.core.services.catalog import CatalogError, ScriptCatalog, StaticCatalog

_HW = "jaxbuild.core.detection.hardware"


def _completed(stdout: str = "", returncode: int = 0, stderr: str = ""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


# ── nvidia-smi ───────────────────────────────────────────────────────


class TestNvidiaSmiProbe:
    def test_not_installed(self):
        with patch(f"{_HW}.shutil.which", return_value=None):
            with pytest.raises(ProbeError, match="not found"):
                NvidiaSmiProbe().device_count()

    def test_device_count(self):
        with patch(f"{_HW}.shutil.which", return_value="/usr/bin/nvidia-smi"), \
             patch(f"{_HW}.subprocess.run", return_value=_completed("2\n2\n")) as m_run:
            assert NvidiaSmiProbe().device_count() == 2
        (cmd,) = m_run.call_args[0]
        assert cmd == ["/usr/bin/nvidia-smi", "--query-gpu=count", "--format=csv,noheader,nounits"]

    def test_no_devices(self):
        failed = _completed(returncode=6, stdout="No devices were found")
        with patch(f"{_HW}.shutil.which", return_value="/usr/bin/nvidia-smi"), \
             patch(f"{_HW}.subprocess.run", return_value=failed):
            assert NvidiaSmiProbe().device_count() == 0

    def test_driver_failure(self):
        failed = _completed(returncode=9, stderr="NVIDIA-SMI has failed")
        with patch(f"{_HW}.shutil.which", return_value="/usr/bin/nvidia-smi"), \
             patch(f"{_HW}.subprocess.run", return_value=failed):
            with pytest.raises(ProbeError, match="NVIDIA-SMI has failed"):
                NvidiaSmiProbe().device_count()

    def test_device_capability(self):
        with patch(f"{_HW}.shutil.which", return_value="/usr/bin/nvidia-smi"), \
             patch(f"{_HW}.subprocess.run", return_value=_completed("8.6\n")) as m_run:
            assert NvidiaSmiProbe().device_capability(1) == ArchitectureIdentifier(8, 6)
        (cmd,) = m_run.call_args[0]
        assert cmd[1:4] == ["-i", "1", "--query-gpu=compute_cap"]

    def test_bad_capability(self):
        with patch(f"{_HW}.shutil.which", return_value="/usr/bin/nvidia-smi"), \
             patch(f"{_HW}.subprocess.run", return_value=_completed("[N/A]\n")):
            with pytest.raises(ProbeError, match="Device 0"):
                NvidiaSmiProbe().device_capability(0)

    def test_timeout(self):
        expired = subprocess.TimeoutExpired(cmd="nvidia-smi", timeout=10)
        with patch(f"{_HW}.shutil.which", return_value="/usr/bin/nvidia-smi"), \
             patch(f"{_HW}.subprocess.run", side_effect=expired):
            with pytest.raises(ProbeError, match="timed out"):
                NvidiaSmiProbe().device_count()


class TestStaticProbe:
    def test_reports_devices(self):
        probe = StaticProbe(["8.6", "7.5"])
        assert probe.device_count() == 2
        assert probe.device_capability(1) == ArchitectureIdentifier(7, 5)
        assert probe.queried == [1]

    def test_fail_at(self):
        with pytest.raises(ProbeError, match="device 0"):
            StaticProbe(["8.6"], fail_at=0).device_capability(0)

    def test_out_of_range(self):
        with pytest.raises(ProbeError):
            StaticProbe(["8.6"]).device_capability(3)


# ── Catalogs ─────────────────────────────────────────────────────────


class TestStaticCatalog:
    def test_custom_table(self):
        catalog = StaticCatalog({"amd64": ["8.0"], "arm64": []})
        assert catalog.lookup(HostCpuFamily.AMD64) == ["8.0"]
        with pytest.raises(CatalogError, match="arm64"):
            catalog.lookup(HostCpuFamily.ARM64)


class TestScriptCatalog:
    def _script(self, tmp_path: Path, body: str) -> Path:
        script = tmp_path / "nvarch.sh"
        script.write_text(f"#!/bin/sh\n{body}\n")
        script.chmod(0o755)
        return script

    def test_passes_family(self, tmp_path: Path):
        script = self._script(
            tmp_path,
            'if [ "$1" = arm64 ]; then echo 8.0,9.0; else echo 7.0,8.0,9.0; fi',
        )
        catalog = ScriptCatalog(script)
        assert catalog.lookup(HostCpuFamily.ARM64) == ["8.0", "9.0"]
        assert catalog.lookup(HostCpuFamily.AMD64) == ["7.0", "8.0", "9.0"]

    def test_failing_script(self, tmp_path: Path):
        script = self._script(tmp_path, "echo 'Unknown arch' >&2; exit 1")
        with pytest.raises(CatalogError, match="Unknown arch"):
            ScriptCatalog(script).lookup(HostCpuFamily.AMD64)

    def test_empty_output(self, tmp_path: Path):
        script = self._script(tmp_path, "true")
        with pytest.raises(CatalogError, match="printed nothing"):
            ScriptCatalog(script).lookup(HostCpuFamily.AMD64)

    def test_missing_script(self, tmp_path: Path):
        with pytest.raises(CatalogError, match="not found"):
            ScriptCatalog(tmp_path / "absent.sh").lookup(HostCpuFamily.AMD64)
