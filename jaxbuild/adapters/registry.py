"""
Adapter registry — central dispatch for every pipeline action.

The pipeline driver never talks to adapters directly. It asks the
registry to execute an Action; the registry resolves the adapter (or
the mock), validates, executes or dry-runs, and returns a Receipt.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable

from jaxbuild.adapters.base import Adapter, ExecutionContext
from jaxbuild.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry and dispatcher for adapters.

    Features:
        - Register adapters by name
        - Mock mode: route every action to one mock adapter
        - Execute actions through the appropriate adapter
        - Report adapters whose tool is missing on this host
    """

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode
        self._mock_adapter: Adapter | None = None

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        """Enable or disable mock mode.

        Args:
            enabled: Whether to use mock mode.
            mock_adapter: Optional custom mock adapter. If None, every
                action succeeds with a canned receipt.
        """
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter

    def register(self, adapter: Adapter) -> None:
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def unavailable(self, names: Iterable[str]) -> list[str]:
        """Registered adapters among ``names`` whose tool is missing here.

        Always empty in mock mode, where nothing real runs. Unregistered
        names are left to dispatch, which fails them with a receipt.
        """
        if self._mock_mode:
            return []

        missing: list[str] = []
        for name in dict.fromkeys(names):
            adapter = self._adapters.get(name)
            if adapter is None:
                continue
            try:
                available = adapter.is_available()
            except Exception as e:
                logger.debug("Availability check of %s raised: %s", name, e)
                available = False
            if not available:
                missing.append(name)
        return missing

    def execute_action(
        self,
        action: Action,
        project_root: str = ".",
        dry_run: bool = False,
    ) -> Receipt:
        """Execute an action through the appropriate adapter.

        Resolves the adapter (or mock), validates, then executes or
        dry-runs. Never raises.

        Args:
            action: The action to execute.
            project_root: Directory relative paths are resolved against.
            dry_run: If True, validate but don't execute.
        """
        start_time = time.monotonic()

        context = ExecutionContext(
            action=action,
            project_root=project_root,
            dry_run=dry_run,
            params=action.params,
        )

        adapter: Adapter | None = None
        if self._mock_mode and self._mock_adapter:
            adapter = self._mock_adapter
        elif self._mock_mode:
            return Receipt.success(
                adapter=action.adapter,
                action_id=action.id,
                output=f"[mock] {action.adapter}:{action.id} executed",
                metadata={"mock": True, "dry_run": dry_run},
            )
        else:
            adapter = self._adapters.get(action.adapter)

        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        try:
            is_valid, error_msg = adapter.validate(context)
            if not is_valid:
                return Receipt.failure(
                    adapter=action.adapter,
                    action_id=action.id,
                    error=f"Validation failed: {error_msg}",
                )
        except Exception as e:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation error: {e}",
            )

        if dry_run:
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"[dry-run] Would execute {action.adapter}:{action.id}",
                metadata={"dry_run": True},
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            # Adapters must not raise; keep the pipeline on receipts
            logger.error("Adapter %s raised during execution: %s", action.adapter, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - start_time) * 1000)
        return receipt
