"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from jaxbuild.core.models.settings import BuildSettings


@pytest.fixture
def cuda_home(tmp_path: Path) -> Path:
    """A fake CUDA install with versioned runtime and cuBLAS libraries."""
    lib64 = tmp_path / "cuda" / "lib64"
    lib64.mkdir(parents=True)
    for name in (
        "libcudart.so",
        "libcudart.so.12",
        "libcudart.so.12.2.140",
        "libcublas.so.12",
        "libcublas.so.12.2.5.6",
        "libcublasLt.so.12.2.5.6",
    ):
        (lib64 / name).touch()
    return tmp_path / "cuda"


@pytest.fixture
def settings(tmp_path: Path, cuda_home: Path) -> BuildSettings:
    """Settings pointing at the fake CUDA install, with no disk cache."""
    return BuildSettings(
        cuda_home=str(cuda_home),
        disk_cache_dir=str(tmp_path / "no-cache"),
        python="python3",
    )


@pytest.fixture
def environ() -> dict[str, str]:
    """Environment as set by the NVIDIA base images."""
    return {"CUDNN_VERSION": "8.9.7.29", "NCCL_VERSION": "2.19.3"}
