from .homeagent import HomeAgent

__all__ = ["HomeAgent"]
