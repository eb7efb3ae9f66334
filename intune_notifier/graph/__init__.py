from .client import GraphClient, GraphConfigurationError, GraphError, TransientGraphError

__all__ = ["GraphClient", "GraphConfigurationError", "GraphError", "TransientGraphError"]
