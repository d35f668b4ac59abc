"""
Architecture catalog — every compute capability for a host CPU family.

Backs ``--sm all``. The default catalog is the static table in
``jaxbuild.core.data.arch_catalog``; a site can instead point
``catalog_script`` at an executable that takes the family as its only
argument and prints one comma-separated line (the release containers'
nvarch.sh does exactly that).
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from jaxbuild.core.data.arch_catalog import _ARCH_CATALOG
from jaxbuild.core.models.settings import BuildSettings
from jaxbuild.core.models.target import TARGET_DELIMITER, HostCpuFamily

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """The catalog has no answer for the requested family."""


class ArchitectureCatalog(ABC):
    """Maps a host CPU family to its full compute capability list."""

    @abstractmethod
    def lookup(self, family: HostCpuFamily) -> list[str]:
        """Capability tokens for ``family``. Raises CatalogError."""


class StaticCatalog(ArchitectureCatalog):
    """In-process table lookup."""

    def __init__(self, table: dict[str, list[str]] | None = None):
        self._table = _ARCH_CATALOG if table is None else table

    def lookup(self, family: HostCpuFamily) -> list[str]:
        entries = self._table.get(family.value)
        if not entries:
            raise CatalogError(f"No compute capabilities known for arch {family.value}")
        return list(entries)


class ScriptCatalog(ArchitectureCatalog):
    """Run an external catalog script: ``<script> <family>``."""

    def __init__(self, script: str | Path, timeout: int = 30):
        self._script = Path(script)
        self._timeout = timeout

    def lookup(self, family: HostCpuFamily) -> list[str]:
        if not self._script.is_file():
            raise CatalogError(f"Catalog script not found: {self._script}")

        logger.debug("Running catalog script %s %s", self._script, family.value)
        try:
            r = subprocess.run(
                [str(self._script), family.value],
                capture_output=True, text=True, timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise CatalogError(f"Catalog script {self._script} failed: {e}") from e

        if r.returncode != 0:
            detail = r.stderr.strip() or f"exit code {r.returncode}"
            raise CatalogError(f"Catalog script {self._script} failed: {detail}")

        line = r.stdout.strip()
        if not line:
            raise CatalogError(f"Catalog script {self._script} printed nothing for {family.value}")
        return line.split(TARGET_DELIMITER)


def catalog_from_settings(settings: BuildSettings) -> ArchitectureCatalog:
    """Pick the script catalog when one is configured, else the static table."""
    if settings.catalog_script:
        return ScriptCatalog(settings.catalog_script)
    return StaticCatalog()
