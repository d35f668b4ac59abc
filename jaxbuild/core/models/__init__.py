"""
Domain models — types shared by resolver, assembler, and pipeline.

All models are re-exported here for convenient access:

    from jaxbuild.core.models import Action, Receipt, TargetSet, BuildConfiguration
"""

from jaxbuild.core.models.action import Action, Receipt
from jaxbuild.core.models.build import BuildConfiguration
from jaxbuild.core.models.settings import BuildSettings
from jaxbuild.core.models.target import (
    ArchitectureIdentifier,
    HostCpuFamily,
    TargetKind,
    TargetMode,
    TargetSet,
)
from jaxbuild.core.models.toolchain import ToolchainConfig

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # build.py
    "BuildConfiguration",
    # settings.py
    "BuildSettings",
    # target.py
    "ArchitectureIdentifier",
    "HostCpuFamily",
    "TargetKind",
    "TargetMode",
    "TargetSet",
    # toolchain.py
    "ToolchainConfig",
]
