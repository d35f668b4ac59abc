"""
Filesystem adapter — file moves, installs, and removals with receipts.

Covers the Bazel relocation (``build/bazel-*`` → ``./bazel``), its
install into a bin directory, and the clean phase's removals, so all of
them can be dry-run and mocked like any other action.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from jaxbuild.adapters.base import Adapter, ExecutionContext
from jaxbuild.core.models.action import Receipt

logger = logging.getLogger(__name__)


class FilesystemAdapter(Adapter):
    """File and directory operations with receipts.

    Action params:
        operation (str): One of 'relocate', 'install', 'remove', 'clear'.
        source (str): Glob (relocate) or file (install).
        dest (str): Target file (relocate) or directory (install).
        mode (int): Permission bits applied to the result (relocate, install).
        path (str): Target for 'remove' (file or tree) and 'clear' (children only).
        missing_ok (bool): 'remove'/'clear' succeed when path is absent (default: True).
    """

    _REQUIRED = {
        "relocate": ("source", "dest"),
        "install": ("source", "dest"),
        "remove": ("path",),
        "clear": ("path",),
    }

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.params.get("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"

        if operation not in self._REQUIRED:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(self._REQUIRED))}"

        for key in self._REQUIRED[operation]:
            if not context.params.get(key):
                return False, f"Missing required param: '{key}'"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.params["operation"]
        try:
            if operation == "relocate":
                return self._relocate(context)
            elif operation == "install":
                return self._install(context)
            elif operation == "remove":
                return self._remove(context)
            else:
                return self._clear(context)
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error: {e}",
                metadata={"operation": operation},
            )

    def _relocate(self, ctx: ExecutionContext) -> Receipt:
        pattern = ctx.params["source"]
        matches = sorted(Path(ctx.working_dir).glob(pattern))
        if len(matches) != 1:
            found = ", ".join(m.name for m in matches) or "nothing"
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Expected exactly one match for {pattern}, found {found}",
            )

        dest = ctx.resolve(ctx.params["dest"])
        shutil.move(str(matches[0]), dest)
        mode = ctx.params.get("mode")
        if mode is not None:
            dest.chmod(mode)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Moved {matches[0]} to {dest}",
            metadata={"source": str(matches[0]), "dest": str(dest)},
        )

    def _install(self, ctx: ExecutionContext) -> Receipt:
        source = ctx.resolve(ctx.params["source"])
        if not source.is_file():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"File not found: {source}",
            )

        dest_dir = ctx.resolve(ctx.params["dest"])
        dest_dir.mkdir(parents=True, exist_ok=True)
        dest = dest_dir / source.name
        shutil.copy2(source, dest)
        dest.chmod(ctx.params.get("mode", 0o755))
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Installed {source} to {dest}",
            metadata={"dest": str(dest)},
        )

    def _remove(self, ctx: ExecutionContext) -> Receipt:
        target = ctx.resolve(ctx.params["path"])
        if not target.exists() and not target.is_symlink():
            return self._missing(ctx, target)

        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Removed {target}",
            metadata={"path": str(target)},
        )

    def _clear(self, ctx: ExecutionContext) -> Receipt:
        target = ctx.resolve(ctx.params["path"])
        if not target.is_dir():
            return self._missing(ctx, target)

        errors: list[str] = []
        removed = 0
        for child in target.iterdir():
            try:
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
                removed += 1
            except OSError as e:
                errors.append(f"{child}: {e}")

        if errors:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error="Could not remove:\n" + "\n".join(errors),
                metadata={"path": str(target), "removed": removed},
            )
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Cleared {removed} entries from {target}",
            metadata={"path": str(target), "removed": removed},
        )

    def _missing(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if ctx.params.get("missing_ok", True):
            return Receipt.success(
                adapter=self.name,
                action_id=ctx.action.id,
                output=f"Nothing to remove at {target}",
                metadata={"path": str(target), "missing": True},
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=ctx.action.id,
            error=f"Path not found: {target}",
        )
