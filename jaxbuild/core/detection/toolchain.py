"""
L3 Detection — CUDA toolchain discovery.

Versions come from two places:
    - the versioned shared libraries under ``<cuda_home>/lib64``
      (libcudart.so.12.2.140 → CUDA 12.2, libcublas.so.12.1.3.1 → cuBLAS 12)
    - CUDNN_VERSION / NCCL_VERSION, as set by the NVIDIA base images

The environment is passed in as a mapping; nothing here reads
``os.environ``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Mapping

from jaxbuild.core.data.arch_catalog import _CC_OPT_FLAGS
from jaxbuild.core.errors import MissingVersionInfoError, ToolchainNotFoundError
from jaxbuild.core.models.settings import BuildSettings
from jaxbuild.core.models.target import HostCpuFamily
from jaxbuild.core.models.toolchain import ToolchainConfig

logger = logging.getLogger(__name__)

_LEADING_NUMBER_RE = re.compile(r"^(\d+)")


def _library_versions(lib_dir: Path, library: str) -> list[tuple[int, ...]]:
    """Versions of ``<library>.so.X.Y.Z*`` files in lib_dir, ascending."""
    pattern = re.compile(rf"^{re.escape(library)}\.so\.(\d+(?:\.\d+){{2,}})$")
    versions = []
    for path in lib_dir.glob(f"{library}.so.*.*.*"):
        m = pattern.match(path.name)
        if m:
            versions.append(tuple(int(p) for p in m.group(1).split(".")))
    return sorted(versions)


def _library_version(lib_dir: Path, library: str, parts: int) -> str:
    versions = _library_versions(lib_dir, library)
    if not versions:
        raise ToolchainNotFoundError(
            f"No {library}.so.*.*.* found in {lib_dir}; is the CUDA toolkit installed?"
        )
    if len(versions) > 1:
        logger.debug("Several %s versions in %s, using the newest", library, lib_dir)
    return ".".join(str(p) for p in versions[-1][:parts])


def _leading_version(environ: Mapping[str, str], key: str) -> str:
    """Major component of an env-supplied version.

    Absent → MissingVersionInfoError. Explicitly empty → "" (unspecified).
    """
    if key not in environ:
        raise MissingVersionInfoError(
            f"{key} is not set; set it to the installed version, or to '' to leave it unspecified"
        )
    value = environ[key].strip()
    if not value:
        logger.info("%s is empty, leaving it unspecified", key)
        return ""
    m = _LEADING_NUMBER_RE.match(value)
    if not m:
        raise MissingVersionInfoError(f"{key}={value!r} does not start with a version number")
    return m.group(1)


def cc_opt_flags(family: HostCpuFamily | str) -> str | None:
    """Host compiler flags for a CPU family, None when unknown."""
    key = family.value if isinstance(family, HostCpuFamily) else family
    return _CC_OPT_FLAGS.get(key)


def locate(
    settings: BuildSettings,
    environ: Mapping[str, str],
    machine: str,
    host_family: HostCpuFamily | str,
) -> ToolchainConfig:
    """Discover the CUDA toolchain.

    Args:
        settings: Build settings (cuda_home, cuda_paths).
        environ: Environment mapping holding CUDNN_VERSION and NCCL_VERSION.
        machine: ``uname -m`` of the host (for the cuDNN multiarch dir).
        host_family: Selects CC_OPT_FLAGS.

    Raises:
        ToolchainNotFoundError: libcudart or libcublas not found.
        MissingVersionInfoError: CUDNN_VERSION or NCCL_VERSION absent.
    """
    lib_dir = Path(settings.cuda_home) / "lib64"

    toolchain = ToolchainConfig(
        cuda_paths=settings.cuda_paths,
        cudnn_paths=f"/usr/lib/{machine}-linux-gnu",
        cuda_version=_library_version(lib_dir, "libcudart", 2),
        cublas_version=_library_version(lib_dir, "libcublas", 1),
        cudnn_version=_leading_version(environ, "CUDNN_VERSION"),
        nccl_version=_leading_version(environ, "NCCL_VERSION"),
        cc_opt_flags=cc_opt_flags(host_family),
    )
    logger.info(
        "Toolchain: CUDA %s, cuBLAS %s, cuDNN %s, NCCL %s",
        toolchain.cuda_version,
        toolchain.cublas_version,
        toolchain.cudnn_version or "-",
        toolchain.nccl_version or "-",
    )
    return toolchain
