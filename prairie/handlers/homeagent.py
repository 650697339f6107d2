import asyncio
import kopf
from collections import defaultdict
from logging import Logger
from typing import Dict, Set, Tuple
from marshmallow import ValidationError
from kubernetes_asyncio.client import ApiException
from prairie.common.models.labels import Labels
from prairie.common.models.result import ReconcileResult
from prairie.resources import HomeAgent
from prairie.sensors import OUTCOME_DONE, OUTCOME_REQUEUE, OUTCOME_ERROR
from prairie.types.settings import RESYNC_IDLE_SECONDS, RESYNC_INTERVAL_SECONDS
from prairie.utils.errors import convert_api_exception

KIND = "HomeAgent"

# Deployments and pods created for a HomeAgent pool
CHILD_LABELS = {
    Labels.KUBERNETES_MANAGED_BY_LABEL: HomeAgent.PRAIRIE_OPERATOR_NAME,
    Labels.PARENT_LABEL: kopf.PRESENT,
}

# HomeAgents seen by the change handlers and not deleted since
tracked_home_agents: Set[Tuple[str, str]] = set()

# Serializes reconcile invocations per (namespace, name)
reconcile_locks: Dict[Tuple[str, str], asyncio.Lock] = {}

# Invocations holding or waiting on each lock
lock_users: Dict[Tuple[str, str], int] = defaultdict(int)


def acquire_lock(key: Tuple[str, str]) -> asyncio.Lock:
    lock_users[key] += 1
    return reconcile_locks.setdefault(key, asyncio.Lock())


def release_lock(key: Tuple[str, str]):
    """Drop the lock of an untracked HomeAgent once nobody uses it."""
    lock_users[key] -= 1
    if lock_users[key] > 0:
        return
    del lock_users[key]
    if key not in tracked_home_agents:
        reconcile_locks.pop(key, None)


async def run_reconcile(
    name: str, namespace: str, logger: Logger, trigger_source: str
) -> ReconcileResult:
    """Run one reconcile invocation for a HomeAgent.

    Invocations for the same HomeAgent never overlap; different HomeAgents
    reconcile concurrently.
    """
    agent = HomeAgent.from_identity(name, namespace, logger=logger)
    sensor = HomeAgent.sensor
    key = (namespace, name)
    try:
        async with acquire_lock(key):
            sensor_state = sensor.on_reconcile_start(name, namespace, trigger_source)
            try:
                result = await agent.reconcile()
            except Exception as ex:
                sensor.on_reconcile_complete(
                    name, namespace, sensor_state, OUTCOME_ERROR, ex
                )
                raise
            sensor.on_reconcile_complete(
                name,
                namespace,
                sensor_state,
                OUTCOME_DONE if result.done else OUTCOME_REQUEUE,
            )
    finally:
        release_lock(key)
    logger.debug(f"Reconcile of `{name}` finished: {result}")
    return result


async def reconcile_or_retry(
    name: str, namespace: str, logger: Logger, trigger_source: str
) -> None:
    """Run reconcile and translate its outcome into kopf's retry semantics."""
    try:
        result = await run_reconcile(name, namespace, logger, trigger_source)
    except ApiException as ex:
        convert_api_exception(
            ex, permanent=False, delay=HomeAgent.conf.error_backoff_seconds
        )
    except ValidationError as ex:
        raise kopf.PermanentError(f"Invalid HomeAgent spec: {ex.messages}") from ex

    if not result.done:
        raise kopf.TemporaryError(
            f"HomeAgent `{name}` has not converged yet: {result.reason}",
            delay=result.requeue_after,
        )


@kopf.on.resume(kind=KIND)
@kopf.on.create(kind=KIND)
@kopf.on.update(kind=KIND)
async def reconciliation(name, namespace, logger, reason, **kwargs):
    """Reconcile HomeAgent resources."""
    tracked_home_agents.add((namespace, name))
    await reconcile_or_retry(
        name, namespace, logger, trigger_source=kopf.Reason(reason).value
    )


def _deleted(type, **_) -> bool:
    return type == "DELETED"


@kopf.on.event(kind=KIND, when=_deleted)
async def on_deleted(name, namespace, logger, **kwargs):
    """Remove the pool of a deleted HomeAgent.

    kopf logs a failure raised here and does not retry event handlers. The
    Deployment then goes away through garbage collection of its owner
    reference to the HomeAgent.
    """
    tracked_home_agents.discard((namespace, name))
    await run_reconcile(name, namespace, logger, trigger_source="delete")


@kopf.on.event("apps", "v1", "deployments", labels=CHILD_LABELS)
@kopf.on.event("pods", labels=CHILD_LABELS)
async def on_child_event(labels, namespace, logger, **kwargs):
    """Re-check a HomeAgent whenever its deployment or one of its pods changes."""
    parent = labels[Labels.PARENT_LABEL]
    result = await run_reconcile(parent, namespace, logger, trigger_source="child")
    if not result.done:
        logger.debug(f"HomeAgent `{parent}` still converging: {result.reason}")


@kopf.timer(
    kind=KIND,
    initial_delay=5.0,
    interval=RESYNC_INTERVAL_SECONDS,
    idle=RESYNC_IDLE_SECONDS,
)
async def resync(name, namespace, logger, **kwargs):
    """Full sync."""
    tracked_home_agents.add((namespace, name))
    await run_reconcile(name, namespace, logger, trigger_source="timer")
