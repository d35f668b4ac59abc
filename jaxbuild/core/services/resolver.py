"""
Compute-target resolver — turn a --sm mode into a validated TargetSet.

    explicit  "8.6,7.5,8.6"  → validate every token     → 7.5,8.6
    all                      → catalog[host family]     → sorted set
    local / unset            → probe every local device → sorted set

Local detection is all-or-nothing: zero devices, or a single failed
device query, fails the whole resolution. A partially detected list
would compile too few kernels and only fail later, at runtime, on the
device that was missed.
"""

from __future__ import annotations

import logging

from jaxbuild.core.detection.hardware import CapabilityProbe, ProbeError
from jaxbuild.core.errors import (
    CatalogUnavailableError,
    MalformedInputError,
    ProbeFailedError,
)
from jaxbuild.core.models.target import (
    ArchitectureIdentifier,
    HostCpuFamily,
    TargetKind,
    TargetMode,
    TargetSet,
)
from jaxbuild.core.services.catalog import ArchitectureCatalog, CatalogError

logger = logging.getLogger(__name__)


def resolve(
    mode: TargetMode,
    host_family: HostCpuFamily,
    *,
    probe: CapabilityProbe,
    catalog: ArchitectureCatalog,
) -> TargetSet:
    """Resolve the compute capabilities to build for.

    Args:
        mode: Parsed --sm value.
        host_family: CPU family of the build host (used by ``all``).
        probe: Local device probe (used by ``local``).
        catalog: Per-family capability catalog (used by ``all``).

    Returns:
        Non-empty, ascending, duplicate-free TargetSet.

    Raises:
        MalformedInputError: An explicit token is not ``<int>.<int>``.
        CatalogUnavailableError: The catalog lookup failed.
        ProbeFailedError: No device, or any device query failed.
    """
    if mode.kind is TargetKind.EXPLICIT:
        targets = _resolve_explicit(mode.tokens)
    elif mode.kind is TargetKind.ALL:
        targets = _resolve_all(host_family, catalog)
    else:
        logger.info("Discovering local compute capabilities")
        targets = _resolve_local(probe)

    logger.info("CUDA COMPUTE: %s", targets.render())
    return targets


def _resolve_explicit(tokens: tuple[str, ...]) -> TargetSet:
    if not tokens:
        raise MalformedInputError("Empty compute capability list")
    return TargetSet.parse(tokens)


def _resolve_all(host_family: HostCpuFamily, catalog: ArchitectureCatalog) -> TargetSet:
    try:
        tokens = catalog.lookup(host_family)
        return TargetSet.parse(tokens)
    except CatalogError as e:
        raise CatalogUnavailableError(str(e)) from e
    except MalformedInputError as e:
        raise CatalogUnavailableError(f"Catalog returned bad data for {host_family.value}: {e}") from e


def _resolve_local(probe: CapabilityProbe) -> TargetSet:
    try:
        count = probe.device_count()
    except ProbeError as e:
        raise ProbeFailedError(f"GPU detection failed: {e}") from e

    if count <= 0:
        raise ProbeFailedError("GPU detection found no CUDA device; pass --sm explicitly")

    found: set[ArchitectureIdentifier] = set()
    for index in range(count):
        try:
            capability = probe.device_capability(index)
        except ProbeError as e:
            raise ProbeFailedError(f"GPU detection failed on device {index}: {e}") from e
        logger.debug("Device %d: compute capability %s", index, capability)
        found.add(capability)

    return TargetSet(found)
