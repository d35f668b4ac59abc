"""
Build errors — the failure taxonomy of a jaxbuild invocation.

Every error raised by target resolution, toolchain discovery, or a
fatal pipeline phase is a ``BuildError``. The ``kind`` attribute is the
stable name reported in JSON output and logs. All of them are fatal:
the invocation aborts with a non-zero exit and the message unmodified.
"""

from __future__ import annotations


class BuildError(Exception):
    """Base class for all fatal jaxbuild failures."""

    kind = "BuildError"


class MalformedInputError(BuildError):
    """An explicit compute capability token (or host arch) is not valid."""

    kind = "MalformedInput"


class CatalogUnavailableError(BuildError):
    """The architecture catalog could not list the capabilities for a host."""

    kind = "CatalogUnavailable"


class ProbeFailedError(BuildError):
    """Local GPU detection found no device or a device query failed."""

    kind = "ProbeFailed"


class ToolchainNotFoundError(BuildError):
    """No versioned CUDA library was found in the CUDA install directory."""

    kind = "ToolchainNotFound"


class MissingVersionInfoError(BuildError):
    """A required auxiliary version (cuDNN, NCCL) was not supplied at all."""

    kind = "MissingVersionInfo"


class ExternalProcessFailedError(BuildError):
    """A fatal pipeline phase returned a failed receipt."""

    kind = "ExternalProcessFailed"

    def __init__(self, phase: str, error: str):
        super().__init__(f"Phase '{phase}' failed: {error}")
        self.phase = phase
        self.error = error
