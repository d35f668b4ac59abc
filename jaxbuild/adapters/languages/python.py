"""
Pip adapter — install and uninstall the built packages.

Runs ``<python> -m pip`` so packages land in the same interpreter that
built them. Wheel patterns (``dist/*.whl``) are expanded at execution
time, since the files only exist once the build phase has run.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from pathlib import Path

from jaxbuild.adapters.base import Adapter, ExecutionContext
from jaxbuild.core.models.action import Receipt

logger = logging.getLogger(__name__)


class PipAdapter(Adapter):
    """Python package manager operations.

    Action params:
        operation (str): 'install' or 'uninstall'.
        python (str): Interpreter to run pip with (default: python3).
        packages (list[str]): Distribution names (for 'uninstall').
        targets (list[str]): Paths or glob patterns to install (for 'install').
        force_reinstall (bool): Pass --force-reinstall (for 'install').
        sudo (bool): Prefix the command with sudo.
        timeout (int | None): Timeout in seconds (default: none).
    """

    _OPERATIONS = {"install", "uninstall"}

    @property
    def name(self) -> str:
        return "pip"

    def is_available(self) -> bool:
        return shutil.which("python3") is not None or shutil.which("python") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.params.get("operation", "")
        if operation not in self._OPERATIONS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(self._OPERATIONS))}"

        if operation == "uninstall" and not context.params.get("packages"):
            return False, "Missing required param: 'packages'"
        if operation == "install" and not context.params.get("targets"):
            return False, "Missing required param: 'targets'"

        return True, ""

    def _expand_targets(self, context: ExecutionContext) -> list[str]:
        """Expand glob patterns; plain paths and '.' pass through."""
        expanded: list[str] = []
        for target in context.params["targets"]:
            if any(ch in target for ch in "*?["):
                matches = sorted(Path(context.working_dir).glob(target))
                expanded.extend(str(m) for m in matches)
            else:
                expanded.append(target)
        return expanded

    def _command(self, context: ExecutionContext) -> list[str] | None:
        params = context.params
        python = params.get("python") or "python3"
        cmd = [python, "-m", "pip", "--disable-pip-version-check"]

        if params["operation"] == "uninstall":
            cmd += ["uninstall", "-y", *params["packages"]]
        else:
            targets = self._expand_targets(context)
            if not targets:
                return None
            cmd.append("install")
            if params.get("force_reinstall"):
                cmd.append("--force-reinstall")
            cmd += targets

        if params.get("sudo"):
            cmd.insert(0, "sudo")
        return cmd

    def execute(self, context: ExecutionContext) -> Receipt:
        cmd = self._command(context)
        if cmd is None:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Nothing to install: no match for {context.params['targets']}",
            )

        logger.debug("Executing: %s (cwd=%s)", " ".join(cmd), context.working_dir)
        start = time.monotonic()
        try:
            result = subprocess.run(
                cmd,
                cwd=context.working_dir,
                capture_output=True,
                text=True,
                timeout=context.params.get("timeout"),
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"pip execution error: {e}",
                metadata={"command": cmd},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=result.stdout.strip(),
                duration_ms=elapsed_ms,
                metadata={"command": cmd, "return_code": 0},
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=result.stderr.strip() or f"pip exited with code {result.returncode}",
            duration_ms=elapsed_ms,
            metadata={"command": cmd, "return_code": result.returncode},
        )
