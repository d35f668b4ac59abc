"""
Build configuration — everything the configure+build phase needs.

This is the output of the parameter assembler and the only input the
pipeline planner reads. ``extras`` is forwarded verbatim and in order:
build/build.py (and Bazel behind it) lets a later flag override an
earlier one with the same key.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from jaxbuild.core.models.toolchain import ToolchainConfig

BUILD_SCRIPT = "build/build.py"


class BuildConfiguration(BaseModel):
    """Assembled parameters for one jaxlib build."""

    compute_capabilities: str
    toolchain: ToolchainConfig
    debug: bool = False
    disk_cache: str | None = None
    jaxlib_only: bool = False
    extras: list[str] = Field(default_factory=list)

    tf_dir: str
    bazel_path: str
    test_tmpdir: str = ""
    max_jobs: int | None = None

    def build_command(self, python: str = "python") -> list[str]:
        """Render the build/build.py invocation as an argv list."""
        tc = self.toolchain
        cmd = [
            python,
            BUILD_SCRIPT,
            "--enable_cuda",
            f"--cuda_path={tc.cuda_paths}",
            f"--cudnn_path={tc.cudnn_paths}",
            f"--cuda_version={tc.cuda_version}",
            f"--cudnn_version={tc.cudnn_version}",
            f"--cuda_compute_capabilities={self.compute_capabilities}",
            "--enable_nccl=true",
            f"--bazel_path={self.bazel_path}",
            f"--bazel_options=--override_repository=org_tensorflow={self.tf_dir}",
        ]
        if self.max_jobs is not None:
            cmd.append(f"--bazel_options=--jobs={self.max_jobs}")
        cmd.extend(self.extras)
        return cmd

    def build_environment(self) -> dict[str, str]:
        """Environment variables the TensorFlow configure step reads."""
        tc = self.toolchain
        env = {
            "TF_NEED_CUDA": "1",
            "TF_NEED_CUTENSOR": "1",
            "TF_NEED_TENSORRT": "1",
            "TF_CUDA_COMPUTE_CAPABILITIES": self.compute_capabilities,
            "TF_CUDA_PATHS": tc.cuda_paths,
            "TF_CUDNN_PATHS": tc.cudnn_paths,
            "TF_CUDA_VERSION": tc.cuda_version,
            "TF_CUBLAS_VERSION": tc.cublas_version,
            "TF_CUDNN_VERSION": tc.cudnn_version,
            "TF_NCCL_VERSION": tc.nccl_version,
        }
        if tc.cc_opt_flags:
            env["CC_OPT_FLAGS"] = tc.cc_opt_flags
        if self.test_tmpdir:
            env["TEST_TMPDIR"] = self.test_tmpdir
        return env
