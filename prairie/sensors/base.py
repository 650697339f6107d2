"""Base sensor classes for operator monitoring.

This module defines the base OperatorSensor class that provides lifecycle hooks
for monitoring operator events. All hooks are no-ops by default, allowing
subclasses to override only the events they care about.

- Hooks come in pairs: on_X_start() and on_X_complete()
- Start hooks return an optional state dict for tracking multi-phase operations
- Complete hooks receive the state dict from their corresponding start hook
"""

from typing import Dict, Optional, Any
import logging

logger = logging.getLogger(__name__)

#: Reconcile outcomes reported to sensors
OUTCOME_DONE = "done"
OUTCOME_REQUEUE = "requeue"
OUTCOME_ERROR = "error"


class OperatorSensor:
    """Base sensor class for Prairie operator monitoring.

    Hooks cover two categories:
    1. Reconciliation lifecycle (one HomeAgent reconcile invocation)
    2. Resource operations (Deployment create/patch/delete and status writes)
    """

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        name: str,
        namespace: str,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Called when a reconcile invocation begins.

        Args:
            name: HomeAgent name
            namespace: Kubernetes namespace
            trigger_source: What triggered reconciliation (create, update, timer, event, ...)

        Returns:
            Optional state dict passed to on_reconcile_complete
        """
        pass

    def on_reconcile_complete(
        self,
        name: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        outcome: str,
        error: Optional[Exception] = None,
    ) -> None:
        """Called when a reconcile invocation completes.

        Args:
            name: HomeAgent name
            namespace: Kubernetes namespace
            state: State dict returned from on_reconcile_start
            outcome: One of ``done``, ``requeue`` or ``error``
            error: Exception if reconciliation failed
        """
        pass

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> Optional[Dict[str, Any]]:
        """Called before a child resource is mutated."""
        pass

    def on_resource_sync_complete(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[str, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Called after a child resource mutation.

        Args:
            operation: ``create``, ``patch`` or ``delete``
        """
        pass

    def on_status_update(
        self,
        name: str,
        namespace: str,
        node_count: int,
    ) -> None:
        """Called after node addresses were published to a HomeAgent's status."""
        pass
