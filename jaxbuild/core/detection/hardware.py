"""
L3 Detection — local GPU compute capability probes.

The resolver's ``--sm local`` mode asks a CapabilityProbe how many
devices are attached and what each one's compute capability is.
Production uses nvidia-smi; tests and mock runs use StaticProbe.

Probes raise ProbeError on any failure. They never return a partial
answer: deciding what a failure means is the resolver's business.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from typing import Iterable

from jaxbuild.core.errors import MalformedInputError
from jaxbuild.core.models.target import ArchitectureIdentifier

logger = logging.getLogger(__name__)


class ProbeError(Exception):
    """A device enumeration or per-device query failed."""


class CapabilityProbe(ABC):
    """Enumerates local accelerators and reads their compute capability."""

    @abstractmethod
    def device_count(self) -> int:
        """Number of attached devices. Raises ProbeError."""

    @abstractmethod
    def device_capability(self, index: int) -> ArchitectureIdentifier:
        """Compute capability of device ``index``. Raises ProbeError."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


# ── nvidia-smi ─────────────────────────────────────────────


class NvidiaSmiProbe(CapabilityProbe):
    """Query the NVIDIA driver through nvidia-smi.

    ``compute_cap`` is available in nvidia-smi from driver 510 onward.
    """

    def __init__(self, binary: str = "nvidia-smi", timeout: int = 10):
        self._binary = binary
        self._timeout = timeout

    def _query(self, *args: str) -> list[str]:
        path = shutil.which(self._binary)
        if path is None:
            raise ProbeError(f"{self._binary} not found on PATH")

        cmd = [path, *args, "--format=csv,noheader,nounits"]
        logger.debug("Probing: %s", " ".join(cmd))
        try:
            r = subprocess.run(
                cmd,
                capture_output=True, text=True, timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ProbeError(f"{self._binary} timed out after {self._timeout}s") from e
        except OSError as e:
            raise ProbeError(f"{self._binary} failed to start: {e}") from e

        if r.returncode != 0:
            detail = (r.stderr or r.stdout).strip()
            raise ProbeError(
                f"{self._binary} exited with code {r.returncode}: {detail}"
            )
        return [line.strip() for line in r.stdout.splitlines() if line.strip()]

    def device_count(self) -> int:
        # "count" is reported once per device; the first line is enough
        try:
            lines = self._query("--query-gpu=count")
        except ProbeError as e:
            # nvidia-smi exits non-zero when no device is attached
            if "No devices were found" in str(e):
                return 0
            raise
        if not lines:
            return 0
        try:
            return int(lines[0])
        except ValueError:
            raise ProbeError(f"Unexpected device count: {lines[0]!r}") from None

    def device_capability(self, index: int) -> ArchitectureIdentifier:
        lines = self._query("-i", str(index), "--query-gpu=compute_cap")
        if len(lines) != 1:
            raise ProbeError(f"Unexpected compute_cap output for device {index}: {lines!r}")
        try:
            return ArchitectureIdentifier.parse(lines[0])
        except MalformedInputError as e:
            raise ProbeError(f"Device {index}: {e}") from e


# ── Fixtures ───────────────────────────────────────────────


class StaticProbe(CapabilityProbe):
    """Fixed device list, for tests and mock runs.

    Args:
        capabilities: One entry per device, e.g. ``["8.6", "8.6", "7.5"]``.
        fail_at: Optional device index whose query raises ProbeError.
    """

    def __init__(self, capabilities: Iterable[str] = (), fail_at: int | None = None):
        self._capabilities = list(capabilities)
        self._fail_at = fail_at
        self.queried: list[int] = []

    def device_count(self) -> int:
        return len(self._capabilities)

    def device_capability(self, index: int) -> ArchitectureIdentifier:
        self.queried.append(index)
        if index == self._fail_at:
            raise ProbeError(f"CUDA Runtime error: device {index} query failed")
        try:
            return ArchitectureIdentifier.parse(self._capabilities[index])
        except IndexError:
            raise ProbeError(f"Invalid device ordinal {index}") from None
        except MalformedInputError as e:
            raise ProbeError(str(e)) from e
