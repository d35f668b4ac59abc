"""
Shell command adapter — run an external command and capture its result.

Used for build/build.py, the Bazel self-check, and ``bazel clean``.
Long-running commands set ``stream`` so their output goes straight to
the operator's terminal instead of being buffered in the receipt.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time
from pathlib import Path

from jaxbuild.adapters.base import Adapter, ExecutionContext
from jaxbuild.core.models.action import Receipt

logger = logging.getLogger(__name__)


class ShellCommandAdapter(Adapter):
    """Execute commands and capture output.

    Action params:
        command (list[str] | str): argv list, or a string split with shlex.
        env (dict[str, str]): Variables added to the inherited environment.
        stream (bool): Inherit stdout/stderr instead of capturing (default: False).
        timeout (int | None): Timeout in seconds (default: none).
        cwd (str): Working directory relative to the project root.
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.params.get("command")
        if not command:
            return False, "Missing required param: 'command'"

        if not Path(context.working_dir).is_dir():
            return False, f"Working directory does not exist: {context.working_dir}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        command = context.params["command"]
        argv = shlex.split(command) if isinstance(command, str) else list(command)
        extra_env = context.params.get("env") or {}
        stream = context.params.get("stream", False)
        timeout = context.params.get("timeout")
        cwd = context.working_dir
        display = shlex.join(argv)

        env = None
        if extra_env:
            env = {**os.environ, **{k: str(v) for k, v in extra_env.items()}}

        logger.debug("Executing: %s (cwd=%s)", display, cwd)
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                cwd=cwd,
                env=env,
                capture_output=not stream,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command timed out after {timeout}s",
                metadata={"command": display, "timeout": timeout},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command execution error: {e}",
                metadata={"command": display},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = (result.stdout or "").strip()
        stderr = (result.stderr or "").strip()

        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=output,
                duration_ms=elapsed_ms,
                metadata={
                    "command": display,
                    "return_code": result.returncode,
                    "stderr": stderr,
                },
            )

        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=stderr or f"Command exited with code {result.returncode}: {display}",
            duration_ms=elapsed_ms,
            metadata={
                "command": display,
                "return_code": result.returncode,
                "stdout": output,
            },
        )
