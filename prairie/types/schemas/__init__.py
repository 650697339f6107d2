from .homeagent_spec import HomeAgentSpecSchema, HomeAgentStatusSchema

__all__ = ["HomeAgentSpecSchema", "HomeAgentStatusSchema"]
