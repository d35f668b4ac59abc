"""jaxbuild — configure, build, and install JAX and jaxlib with CUDA support."""

__version__ = "0.1.0"
