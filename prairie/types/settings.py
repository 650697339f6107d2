import os
from typing import Any

_TRUE, _FALSE = {"True", "true", "yes", "1"}, {"False", "false", "no", "0"}


def _getenv(name: str, *default: Any) -> Any:
    try:
        v = os.environ[name]
        if v in _TRUE:
            return True
        elif v in _FALSE:
            return False
        else:
            return v
    except KeyError:
        pass
    if default:
        return default[0]
    raise KeyError(name)


# ------------------------------------------------
# ---- Defaults and environment variables ----
# ------------------------------------------------

#: Seconds to wait before re-checking a HomeAgent whose pool has not converged yet
REQUEUE_DELAY_SECONDS = float(_getenv("REQUEUE_DELAY_SECONDS", 0.8))

#: Seconds kopf waits before retrying after a Kubernetes API failure
ERROR_BACKOFF_SECONDS = float(_getenv("ERROR_BACKOFF_SECONDS", 30.0))

#: Image run by every home agent instance
HOME_AGENT_IMAGE = str(_getenv("HOME_AGENT_IMAGE", "kismi/mo-daemon:latest"))

#: Pull policy of the home agent container
HOME_AGENT_IMAGE_PULL_POLICY = str(_getenv("HOME_AGENT_IMAGE_PULL_POLICY", "Always"))

#: Sort published node addresses by pod name instead of API listing order
SORT_NODE_ADDRESSES = bool(_getenv("SORT_NODE_ADDRESSES", True))

#: Seconds between periodic full resyncs of a HomeAgent
RESYNC_INTERVAL_SECONDS = float(_getenv("RESYNC_INTERVAL_SECONDS", 60.0))

#: Seconds a HomeAgent must stay unchanged before periodic resyncs kick in
RESYNC_IDLE_SECONDS = float(_getenv("RESYNC_IDLE_SECONDS", 30.0))

#: Maximum number of concurrent kopf workers
WORKER_LIMIT = int(_getenv("WORKER_LIMIT", 2))


class Settings:
    """Operator settings"""

    requeue_delay_seconds: float = REQUEUE_DELAY_SECONDS
    error_backoff_seconds: float = ERROR_BACKOFF_SECONDS
    home_agent_image: str = HOME_AGENT_IMAGE
    home_agent_image_pull_policy: str = HOME_AGENT_IMAGE_PULL_POLICY
    sort_node_addresses: bool = SORT_NODE_ADDRESSES
    resync_interval_seconds: float = RESYNC_INTERVAL_SECONDS
    resync_idle_seconds: float = RESYNC_IDLE_SECONDS
    worker_limit: int = WORKER_LIMIT

    def __init__(
        self,
        *args,
        requeue_delay_seconds: float = None,
        error_backoff_seconds: float = None,
        home_agent_image: str = None,
        home_agent_image_pull_policy: str = None,
        sort_node_addresses: bool = None,
        resync_interval_seconds: float = None,
        resync_idle_seconds: float = None,
        worker_limit: int = None,
        **kwargs,
    ):
        if requeue_delay_seconds is not None:
            self.requeue_delay_seconds = requeue_delay_seconds

        if error_backoff_seconds is not None:
            self.error_backoff_seconds = error_backoff_seconds

        if home_agent_image is not None:
            self.home_agent_image = home_agent_image

        if home_agent_image_pull_policy is not None:
            self.home_agent_image_pull_policy = home_agent_image_pull_policy

        if sort_node_addresses is not None:
            self.sort_node_addresses = sort_node_addresses

        if resync_interval_seconds is not None:
            self.resync_interval_seconds = resync_interval_seconds

        if resync_idle_seconds is not None:
            self.resync_idle_seconds = resync_idle_seconds

        if worker_limit is not None:
            self.worker_limit = worker_limit
