"""
Action and Receipt models — the phase execution contract.

Every external side effect of a build (pip, build/build.py, bazel,
moving files around) is requested as an Action and reported back as a
Receipt. Adapters turn the one into the other and never raise, so the
pipeline driver only ever inspects receipts.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """A single step of a pipeline phase, executed by one adapter."""

    id: str                         # "<phase>:<step>", unique within a plan
    name: str = ""                  # human-readable name
    adapter: str                    # which adapter handles this
    phase: str = ""                 # owning pipeline phase
    params: dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    """Result of executing an Action.

    ``error`` carries the external tool's diagnostic output verbatim
    so it can be surfaced to the operator unmodified.
    """

    adapter: str
    action_id: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the action succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the action failed."""
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        adapter: str,
        action_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="failed",
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        adapter: str,
        action_id: str,
        reason: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a skip receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="skipped",
            output=reason,
            **kwargs,
        )
