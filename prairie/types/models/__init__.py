from .homeagent_spec import HomeAgentSpec, HomeAgentStatus
from .homeagent_resources import HomeAgentResources

__all__ = ["HomeAgentSpec", "HomeAgentStatus", "HomeAgentResources"]
