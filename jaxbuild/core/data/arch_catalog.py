"""
L0 Data — CUDA compute capabilities per host CPU family.

Used by ``--sm all``: every capability a release container is built
for on that family. arm64 hosts only ship with datacenter parts, so the
list starts at Ampere.
"""

from __future__ import annotations

_ARCH_CATALOG: dict[str, list[str]] = {
    # family: compute capabilities, ascending
    "amd64": ["5.2", "6.0", "6.1", "7.0", "7.5", "8.0", "8.6", "8.9", "9.0"],
    "arm64": ["8.0", "8.6", "8.9", "9.0"],
}

# Host compiler optimization flags exported as CC_OPT_FLAGS
_CC_OPT_FLAGS: dict[str, str] = {
    "amd64": "-march=sandybridge -mtune=broadwell",
    "arm64": "-march=armv8-a",
}
