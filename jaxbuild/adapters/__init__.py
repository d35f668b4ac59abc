"""Adapters — tool bindings for pip, the build script, and the filesystem.

Public re-exports for convenient access.
"""

from jaxbuild.adapters.base import Adapter, ExecutionContext
from jaxbuild.adapters.mock import MockAdapter
from jaxbuild.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
]
