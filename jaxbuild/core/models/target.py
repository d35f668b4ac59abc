"""
Target models — what hardware the build compiles for.

    TargetMode              the user's --sm choice (explicit list, all, local)
    ArchitectureIdentifier  one CUDA compute capability, e.g. 8.6
    TargetSet               the resolved, sorted, de-duplicated capabilities
    HostCpuFamily           amd64 / arm64, drives catalog and compiler flags
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from jaxbuild.core.errors import MalformedInputError

_IDENTIFIER_RE = re.compile(r"^(\d+)\.(\d+)$", re.ASCII)

# Delimiter used both for parsing explicit lists and rendering sets
TARGET_DELIMITER = ","


class TargetKind(str, Enum):
    EXPLICIT = "explicit"
    ALL = "all"
    LOCAL = "local"


@dataclass(frozen=True)
class TargetMode:
    """How the compute capabilities are chosen.

    Explicit tokens are kept verbatim here; validation is the
    resolver's job so the offending token can be reported.
    """

    kind: TargetKind
    tokens: tuple[str, ...] = ()

    @classmethod
    def parse(cls, value: str | None) -> TargetMode:
        """Parse a --sm value. None and "" mean local (the default)."""
        if value is None or value == "" or value == TargetKind.LOCAL.value:
            return cls(TargetKind.LOCAL)
        if value == TargetKind.ALL.value:
            return cls(TargetKind.ALL)
        return cls(TargetKind.EXPLICIT, tuple(value.split(TARGET_DELIMITER)))

    def __str__(self) -> str:
        if self.kind is TargetKind.EXPLICIT:
            return TARGET_DELIMITER.join(self.tokens)
        return self.kind.value


@dataclass(frozen=True, order=True)
class ArchitectureIdentifier:
    """A ``<major>.<minor>`` compute capability."""

    major: int
    minor: int

    def __post_init__(self) -> None:
        if self.major < 0 or self.minor < 0:
            raise MalformedInputError(
                f"Compute capability must be non-negative: {self.major}.{self.minor}"
            )

    @classmethod
    def parse(cls, token: str) -> ArchitectureIdentifier:
        """Parse ``"8.6"``. Anything else raises MalformedInputError."""
        m = _IDENTIFIER_RE.match(token.strip())
        if not m:
            raise MalformedInputError(
                f"Invalid compute capability '{token}': expected <major>.<minor>, e.g. 8.6"
            )
        return cls(int(m.group(1)), int(m.group(2)))

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


class TargetSet:
    """Sorted, duplicate-free, never-empty set of compute capabilities."""

    __slots__ = ("_items",)

    def __init__(self, identifiers: Iterable[ArchitectureIdentifier]):
        items = tuple(sorted(set(identifiers)))
        if not items:
            raise MalformedInputError("No compute capability to build for")
        self._items = items

    @classmethod
    def parse(cls, tokens: Iterable[str]) -> TargetSet:
        """Validate every token; the first malformed one aborts."""
        return cls(ArchitectureIdentifier.parse(t) for t in tokens)

    @property
    def identifiers(self) -> tuple[ArchitectureIdentifier, ...]:
        return self._items

    def render(self) -> str:
        """Render as ``"7.5,8.6"``, the form build/build.py expects."""
        return TARGET_DELIMITER.join(str(i) for i in self._items)

    def __iter__(self):
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TargetSet):
            return NotImplemented
        return self._items == other._items

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        return f"TargetSet({self.render()!r})"


class HostCpuFamily(str, Enum):
    """CPU family of the build host (Docker's TARGETARCH naming)."""

    AMD64 = "amd64"
    ARM64 = "arm64"

    @classmethod
    def detect(cls, machine: str, override: str | None = None) -> HostCpuFamily:
        """Resolve the family from an override (TARGETARCH) or ``uname -m``.

        Raises:
            MalformedInputError: Unknown override or machine.
        """
        if override:
            try:
                return cls(override)
            except ValueError:
                raise MalformedInputError(f"Unknown arch {override}") from None

        family = _MACHINE_FAMILIES.get(machine)
        if family is None:
            raise MalformedInputError(f"Unknown arch {machine}")
        return family


_MACHINE_FAMILIES: dict[str, HostCpuFamily] = {
    "x86_64": HostCpuFamily.AMD64,
    "amd64": HostCpuFamily.AMD64,
    "aarch64": HostCpuFamily.ARM64,
    "arm64": HostCpuFamily.ARM64,
}
