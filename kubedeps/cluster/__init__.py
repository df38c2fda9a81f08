"""Cluster API access for kubedeps.

Submodules:
    client      -- ClusterClient protocol consumed by the graph and schema layers.
    kubernetes  -- kubernetes-asyncio implementation of ClusterClient.
"""

from kubedeps.cluster.client import ClusterClient

__all__ = ["ClusterClient"]
