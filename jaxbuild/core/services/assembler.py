"""
Parameter assembler — merge targets, toolchain, and user flags.

The extras sequence is built by appending only, in this order:

    1. user --build-param values, verbatim, duplicates kept
    2. the disk cache flag, when the cache directory exists
    3. the five debug flags, when --dbg is set

Bazel resolves repeated flags last-wins, so this order is what makes
the debug flags override anything the user passed for the same key.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from jaxbuild.core.models.build import BuildConfiguration
from jaxbuild.core.models.settings import BuildSettings
from jaxbuild.core.models.target import TargetSet
from jaxbuild.core.models.toolchain import ToolchainConfig

logger = logging.getLogger(__name__)

DEBUG_PARAMS: tuple[str, ...] = (
    "--bazel_options=-c",
    "--bazel_options=dbg",
    "--bazel_options=--strip=never",
    "--bazel_options=--cxxopt=-g",
    "--bazel_options=--cxxopt=-O0",
)


def disk_cache_param(path: str) -> str:
    return f"--bazel_options=--disk_cache={path}"


def assemble(
    targets: TargetSet,
    toolchain: ToolchainConfig,
    extras: Sequence[str],
    *,
    debug: bool,
    cache_path: str | None,
    jaxlib_only: bool,
    settings: BuildSettings,
    max_jobs: int | None = None,
) -> BuildConfiguration:
    """Build the configuration handed to the configure+build phase.

    Args:
        targets: Resolved compute capabilities.
        toolchain: Discovered CUDA toolchain.
        extras: User build parameters, in command-line order.
        debug: Append the debug flag group.
        cache_path: Disk cache directory; used only if it exists.
        jaxlib_only: Build and install jaxlib alone.
        settings: Build settings (tf_dir, bazel_path, test_tmpdir).
        max_jobs: Optional Bazel job cap.
    """
    params = list(extras)

    disk_cache: str | None = None
    if cache_path and Path(cache_path).is_dir():
        disk_cache = cache_path
        params.append(disk_cache_param(cache_path))
        logger.info("Using Bazel disk cache at %s", cache_path)

    if debug:
        params.extend(DEBUG_PARAMS)

    return BuildConfiguration(
        compute_capabilities=targets.render(),
        toolchain=toolchain,
        debug=debug,
        disk_cache=disk_cache,
        jaxlib_only=jaxlib_only,
        extras=params,
        tf_dir=settings.tf_dir,
        bazel_path=settings.bazel_path,
        test_tmpdir=settings.test_tmpdir,
        max_jobs=max_jobs,
    )


def max_build_jobs(
    machine: str,
    cpu_count: int | None,
    limit: int,
    *,
    targetarch: str | None = None,
) -> int | None:
    """Bazel job cap for native aarch64 builds.

    SBSA builders run out of memory above ``limit`` jobs. Only applies
    when the family comes from ``uname -m``; with TARGETARCH set the
    job count is left to Bazel.
    """
    if targetarch or machine != "aarch64" or not cpu_count:
        return None
    return min(cpu_count, limit)
