"""Language adapters — Python packaging (pip)."""

from jaxbuild.adapters.languages.python import PipAdapter

__all__ = ["PipAdapter"]
