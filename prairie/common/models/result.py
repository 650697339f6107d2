from typing import NamedTuple, Optional


class ReconcileResult(NamedTuple):
    """Outcome of a single reconcile invocation.

    Failures are not represented here; they are raised to the caller.
    """

    requeue_after: Optional[float] = None
    reason: str = "Converged"

    @property
    def done(self) -> bool:
        return self.requeue_after is None

    @classmethod
    def finished(cls, reason: str = "Converged") -> "ReconcileResult":
        return cls(None, reason)

    @classmethod
    def requeue(cls, delay: float, reason: str) -> "ReconcileResult":
        return cls(delay, reason)

    def __str__(self):
        if self.done:
            return f"done ({self.reason})"
        return f"retry after {self.requeue_after}s ({self.reason})"
