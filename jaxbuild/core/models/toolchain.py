"""
Toolchain model — the CUDA installation discovered on the build host.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ToolchainConfig(BaseModel):
    """Paths and versions handed to build/build.py.

    Populated once by the toolchain locator; read-only thereafter.
    ``cudnn_version`` and ``nccl_version`` may be empty when the caller
    explicitly left them unspecified.
    """

    model_config = ConfigDict(frozen=True)

    cuda_paths: str                 # comma-separated, e.g. "/usr,/usr/local/cuda"
    cudnn_paths: str
    cuda_version: str               # "<major>.<minor>" from libcudart
    cublas_version: str             # "<major>" from libcublas
    cudnn_version: str = ""
    nccl_version: str = ""
    cc_opt_flags: str | None = None
