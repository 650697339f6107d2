from prairie.handlers import homeagent, probes

__all__ = ["homeagent", "probes"]
