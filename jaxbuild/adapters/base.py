"""
Adapter base — the contract between the pipeline driver and external tools.

The driver never calls pip, build/build.py, or bazel itself. It hands
an Action to an adapter and gets a Receipt back, which is what lets
the whole pipeline run against MockAdapter in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from jaxbuild.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute an action."""

    action: Action
    project_root: str = "."
    dry_run: bool = False
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def working_dir(self) -> str:
        """Resolved working directory: the ``cwd`` param or the project root."""
        cwd = self.params.get("cwd")
        if cwd:
            return str(Path(self.project_root) / cwd)
        return self.project_root

    def resolve(self, path: str) -> Path:
        """Resolve a path param against the working directory (``~`` expanded)."""
        target = Path(path).expanduser()
        if not target.is_absolute():
            target = Path(self.working_dir) / target
        return target


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform external side effects and return receipts.
    They NEVER raise exceptions; failures are captured in the Receipt.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'shell', 'pip', 'filesystem')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available. Never raises."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt. MUST never raise."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
