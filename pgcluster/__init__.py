"""
pgcluster: local PostgreSQL streaming-replication clusters

This package provisions one primary plus synchronous and asynchronous
standbys on a single host from an installed PostgreSQL build.

Quick Start (Shell):
    setup-cluster --datadir ~/demo 1:1     # primary + 1 sync + 1 async
    cluster-status ~/demo                  # Check status
    stop-cluster --node node3 ~/demo       # Stop one standby
    remove-cluster ~/demo                  # Stop everything and delete

Python API:
    from pgcluster import ClusterManager, ClusterSettings
    manager = ClusterManager(ClusterSettings.load())
    manager.setup(1, 1, "~/demo")
"""

__version__ = "1.0.0"

from .cluster import ClusterManager, NodeStatus
from .config import ClusterSettings, EngineTools, VersionRegistry
from .errors import (
    ArgumentError,
    ClusterError,
    DescriptorError,
    MissingDescriptor,
    ToolFailure,
    VersionNotFound,
)
from .topology import ClusterTopology, Node, plan_topology

__all__ = [
    "ArgumentError",
    "ClusterError",
    "ClusterManager",
    "ClusterSettings",
    "ClusterTopology",
    "DescriptorError",
    "EngineTools",
    "MissingDescriptor",
    "Node",
    "NodeStatus",
    "ToolFailure",
    "VersionNotFound",
    "VersionRegistry",
    "plan_topology",
]
