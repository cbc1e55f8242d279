#!/usr/bin/env python3
"""
Cluster topology planning.

A topology is one primary followed by the synchronous standbys and then the
asynchronous standbys. Node ``i`` (1-based, in that order) is named
``<server_prefix><i>``, lives in ``<data_dir_prefix><i>`` and listens on
``start_port + i - 1``.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .config import DATADIR_PREFIX, DEFAULT_PORT, SERVER_PREFIX
from .errors import ArgumentError


PRIMARY = "primary"
SYNC_STANDBY = "synchronous_standby"
ASYNC_STANDBY = "asynchronous_standby"

ROLES = (PRIMARY, SYNC_STANDBY, ASYNC_STANDBY)
MAX_PORT = 65535

_NAME_PATTERN = re.compile(r'^[A-Za-z0-9_.-]+$')


@dataclass(frozen=True)
class Node:
    """A single engine instance in the cluster."""
    role: str  # 'primary', 'synchronous_standby' or 'asynchronous_standby'
    server_name: str
    data_dir_name: str
    port: int

    @property
    def is_primary(self) -> bool:
        return self.role == PRIMARY


@dataclass
class ClusterTopology:
    """Ordered nodes of a cluster: primary, synchronous, asynchronous."""
    nodes: List[Node]

    def __post_init__(self):
        if not self.nodes or not self.nodes[0].is_primary:
            raise ValueError("A topology must start with its primary")
        if sum(1 for node in self.nodes if node.is_primary) != 1:
            raise ValueError("A topology must have exactly one primary")
        order = [ROLES.index(node.role) for node in self.nodes]
        if order != sorted(order):
            raise ValueError("Nodes must be ordered primary, synchronous, asynchronous")
        names = [node.server_name for node in self.nodes]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate server names in {names}")
        ports = [node.port for node in self.nodes]
        if ports != sequence(ports[0], len(ports)):
            raise ValueError(f"Ports must be contiguous, got {ports}")

    @property
    def primary(self) -> Node:
        return self.nodes[0]

    @property
    def sync_standbys(self) -> List[Node]:
        return [node for node in self.nodes if node.role == SYNC_STANDBY]

    @property
    def async_standbys(self) -> List[Node]:
        return [node for node in self.nodes if node.role == ASYNC_STANDBY]

    @property
    def standbys(self) -> List[Node]:
        return self.nodes[1:]

    @property
    def startup_order(self) -> List[Node]:
        return list(self.nodes)

    @property
    def shutdown_order(self) -> List[Node]:
        return list(reversed(self.nodes))

    @property
    def names(self) -> List[str]:
        return [node.server_name for node in self.nodes]

    @property
    def ports(self) -> List[int]:
        return [node.port for node in self.nodes]

    def counts(self) -> Tuple[int, int]:
        """Return (synchronous, asynchronous) standby counts."""
        return len(self.sync_standbys), len(self.async_standbys)

    def select(self, names: Optional[Iterable[str]]) -> List[Node]:
        """
        Return the nodes named in ``names``, in topology order.

        ``None`` selects every node. Unknown names raise ArgumentError.
        """
        if names is None:
            return list(self.nodes)
        wanted = set(names)
        unknown = sorted(wanted - set(self.names))
        if unknown:
            raise ArgumentError(
                f"Unknown node(s): {', '.join(unknown)} (cluster has {', '.join(self.names)})"
            )
        return [node for node in self.nodes if node.server_name in wanted]


def sequence(start: int, count: int, step: int = 1) -> List[int]:
    """Return ``count`` integers starting at ``start``, ``step`` apart."""
    return [start + i * step for i in range(count)]


def _check_count(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ArgumentError(f"{label} must be a non-negative integer, got {value!r}")
    return value


def _check_prefix(value: str, label: str) -> str:
    if not value or not _NAME_PATTERN.match(value):
        raise ArgumentError(f"{label} must match [A-Za-z0-9_.-]+, got {value!r}")
    return value


def plan_topology(
    sync_count: int,
    async_count: int,
    start_port: int = DEFAULT_PORT,
    server_prefix: str = SERVER_PREFIX,
    data_dir_prefix: str = DATADIR_PREFIX,
) -> ClusterTopology:
    """
    Compute the topology for one primary plus the given standby counts.

    Args:
        sync_count: Number of synchronous standbys
        async_count: Number of asynchronous standbys
        start_port: Port of the primary; standbys follow contiguously
        server_prefix: Prefix of server (replication) names
        data_dir_prefix: Prefix of data directory names

    Returns:
        ClusterTopology with 1 + sync_count + async_count nodes
    """
    _check_count(sync_count, "Synchronous standby count")
    _check_count(async_count, "Asynchronous standby count")
    _check_prefix(server_prefix, "Server prefix")
    _check_prefix(data_dir_prefix, "Data directory prefix")

    total = 1 + sync_count + async_count
    if isinstance(start_port, bool) or not isinstance(start_port, int) or start_port < 1:
        raise ArgumentError(f"Port must be a positive integer, got {start_port!r}")
    if start_port + total - 1 > MAX_PORT:
        raise ArgumentError(
            f"{total} nodes starting at port {start_port} exceed port {MAX_PORT}"
        )

    roles = [PRIMARY] + [SYNC_STANDBY] * sync_count + [ASYNC_STANDBY] * async_count
    indices = sequence(1, total)
    ports = sequence(start_port, total)

    nodes = [
        Node(
            role=role,
            server_name=f"{server_prefix}{index}",
            data_dir_name=f"{data_dir_prefix}{index}",
            port=port,
        )
        for role, index, port in zip(roles, indices, ports)
    ]
    return ClusterTopology(nodes)


def parse_counts(spec: str) -> Tuple[int, int]:
    """
    Parse a ``<sync>:<async>`` count specification.

    Examples:
        "1:1" -> (1, 1)
        "0:0" -> (0, 0)
    """
    match = re.match(r'^\s*(\d+)\s*:\s*(\d+)\s*$', spec or "")
    if not match:
        raise ArgumentError(
            f"Expected <sync>:<async> with non-negative integers, got '{spec}'"
        )
    return int(match.group(1)), int(match.group(2))
