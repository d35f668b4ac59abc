"""
Build settings — host layout and defaults for a jaxbuild invocation.

Loaded from jaxbuild.yml when one exists, otherwise the defaults
below, which match the JAX development container layout.
"""

from __future__ import annotations

import sys

from pydantic import BaseModel, ConfigDict, Field


class BuildSettings(BaseModel):
    """Explicit configuration threaded through every component."""

    model_config = ConfigDict(extra="forbid")

    # Sources
    tf_dir: str = "/opt/jax/tensorflow-source"
    python: str = Field(default_factory=lambda: sys.executable or "python3")

    # CUDA toolchain
    cuda_home: str = "/usr/local/cuda"
    cuda_paths: str = "/usr,/usr/local/cuda"

    # Bazel
    bazel_path: str = "/usr/local/bin/bazel"
    install_dir: str = "/usr/local/bin"
    disk_cache_dir: str = "/cache"
    bazel_cache_dir: str = "~/.cache/bazel"
    test_tmpdir: str = "/tmp/bazel_cache"
    scratch_dir: str = "/tmp"
    max_build_jobs: int = 40        # arm64 only, avoids OOM aborts on SBSA builders

    # Artifacts
    dist_dir: str = "dist"
    configure_bazelrc: str = ".jax_configure.bazelrc"
    package: str = "jax"
    library_package: str = "jaxlib"

    # External script printing the capabilities for "--sm all" (e.g. nvarch.sh)
    catalog_script: str | None = None
