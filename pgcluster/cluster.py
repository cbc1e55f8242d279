#!/usr/bin/env python3
"""
Cluster lifecycle: setup, stop, remove and status of a local
streaming-replication cluster.

Example:
    >>> manager = ClusterManager(ClusterSettings.load())
    >>> manager.setup(1, 1, "/tmp/demo")
    >>> manager.stop("/tmp/demo", ["node3"])
    >>> manager.remove("/tmp/demo")
"""

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

import psycopg2

from . import monitor
from .bootstrap import data_dir, init_primary, init_standby
from .config import ClusterSettings, EngineTools, VersionRegistry
from .descriptor import ClusterDescriptor, descriptor_exists, load, store
from .errors import ArgumentError, ClusterError
from .launcher import is_running, start_node, stop_nodes
from .monitor import SenderState
from .topology import ClusterTopology, Node, plan_topology
from .utils import print_info, print_step, print_success, print_warning


PathLike = Union[str, Path]


@dataclass
class NodeStatus:
    """Observed state of one node."""
    node: Node
    initialized: bool
    running: bool
    senders: List[SenderState] = field(default_factory=list)
    probe_error: Optional[str] = None


class ClusterManager:
    """Sequences bootstrap, launch and teardown of cluster nodes."""

    def __init__(
        self,
        settings: ClusterSettings,
        registry: Optional[VersionRegistry] = None,
        probe: Callable[..., List[SenderState]] = monitor.fetch_replication_state,
    ):
        self.settings = settings
        self.registry = registry or VersionRegistry(settings.root)
        self.probe = probe

    def _cluster_dir(self, cluster_dir: Optional[PathLike]) -> Path:
        if cluster_dir is None:
            cluster_dir = self.settings.cluster_dir
        if cluster_dir is None or not str(cluster_dir).strip():
            raise ArgumentError("A cluster data directory is required")
        return Path(cluster_dir).expanduser().resolve()

    # -------------------------------------------------------------------------
    # setup
    # -------------------------------------------------------------------------

    def setup(
        self,
        sync_count: int,
        async_count: int,
        cluster_dir: Optional[PathLike] = None,
        start_port: Optional[int] = None,
        version: Optional[str] = None,
    ) -> ClusterTopology:
        """
        Create (or resume) a cluster and start every node.

        An existing descriptor under ``cluster_dir`` takes precedence over the
        requested counts and port. A new topology is persisted when setup
        ends, even if bring-up failed part way, so stop/remove can still
        reach the nodes that did start.

        Raises:
            ArgumentError: invalid counts, port or directory
            VersionNotFound: the engine build cannot be resolved
            ToolFailure: initdb, pg_basebackup or pg_ctl failed
        """
        cluster_dir = self._cluster_dir(cluster_dir)
        if start_port is None:
            start_port = self.settings.start_port
        planned = plan_topology(
            sync_count,
            async_count,
            start_port,
            self.settings.server_prefix,
            self.settings.data_dir_prefix,
        )

        existing = load(cluster_dir) if descriptor_exists(cluster_dir) else None
        if existing and version and existing.version and version != existing.version:
            print_warning(f"Cluster was created with PostgreSQL {existing.version}, using {version}")
        tools = self.registry.tools(version or (existing.version if existing else None))

        cluster_dir.mkdir(parents=True, exist_ok=True)

        if existing:
            topology = existing.topology
            print_info(f"Reusing cluster descriptor in {cluster_dir}")
            if topology.counts() != planned.counts() or topology.primary.port != planned.primary.port:
                sync, async_ = topology.counts()
                print_warning(
                    f"Requested {sync_count}:{async_count} on port {start_port}, "
                    f"keeping existing {sync}:{async_} on port {topology.primary.port}"
                )
        else:
            topology = planned

        try:
            self._bring_up(tools, cluster_dir, topology)
        finally:
            if existing is None:
                store(cluster_dir, ClusterDescriptor(topology=topology, version=tools.version))
                print_info(f"Cluster descriptor written to {cluster_dir / 'cluster'}")

        print_success(f"Cluster is running: {', '.join(f'{n.server_name}:{n.port}' for n in topology.nodes)}")
        print()
        print("To stop the cluster:")
        print(f"  stop-cluster {cluster_dir}")
        print("To connect to the primary:")
        print(f"  {tools.psql} -h {self.settings.host} -p {topology.primary.port} postgres")
        return topology

    def _bring_up(self, tools: EngineTools, cluster_dir: Path, topology: ClusterTopology) -> None:
        timeout = self.settings.pg_ctl_timeout

        init_primary(tools, cluster_dir, topology)
        start_node(tools, cluster_dir, topology.primary, timeout)

        for node in topology.standbys:
            init_standby(tools, cluster_dir, topology, node, self.settings.host)
            start_node(tools, cluster_dir, node, timeout)

    # -------------------------------------------------------------------------
    # stop / remove
    # -------------------------------------------------------------------------

    def stop(
        self,
        cluster_dir: PathLike,
        node_names: Optional[Iterable[str]] = None,
        version: Optional[str] = None,
    ) -> List[Node]:
        """
        Stop the cluster's nodes, asynchronous standbys first, primary last.

        Args:
            cluster_dir: Cluster root holding the descriptor
            node_names: Restrict to these server names (default: all)
            version: Engine build to use (default: the one the cluster was created with)

        Returns:
            Nodes that failed to stop
        """
        cluster_dir = self._cluster_dir(cluster_dir)
        descriptor = load(cluster_dir)
        topology = descriptor.topology

        selected = {node.server_name for node in topology.select(node_names)}
        targets = [node for node in topology.shutdown_order if node.server_name in selected]
        tools = self.registry.tools(version or descriptor.version)

        return stop_nodes(tools, cluster_dir, targets, self.settings.pg_ctl_timeout)

    def remove(
        self,
        cluster_dir: PathLike,
        force: bool = False,
        version: Optional[str] = None,
    ) -> None:
        """
        Stop every node and delete the cluster root.

        The root is kept when a node could not be stopped, unless ``force``.

        Raises:
            MissingDescriptor: the root holds no descriptor; nothing is touched
            ClusterError: a node failed to stop and ``force`` is not set
        """
        cluster_dir = self._cluster_dir(cluster_dir)
        load(cluster_dir)

        failed = self.stop(cluster_dir, version=version)
        if failed:
            names = ", ".join(node.server_name for node in failed)
            if not force:
                raise ClusterError(
                    f"Not removing {cluster_dir}: {names} could not be stopped "
                    f"(use --force to remove anyway)"
                )
            print_warning(f"Removing {cluster_dir} although {names} may still be running")

        print_step(f"Removing {cluster_dir}...")
        shutil.rmtree(cluster_dir)
        print_success(f"Removed {cluster_dir}")

    # -------------------------------------------------------------------------
    # status
    # -------------------------------------------------------------------------

    def status(self, cluster_dir: PathLike, version: Optional[str] = None) -> List[NodeStatus]:
        """Report whether each node is initialized and running."""
        cluster_dir = self._cluster_dir(cluster_dir)
        descriptor = load(cluster_dir)
        tools = self.registry.tools(version or descriptor.version)

        statuses = []
        for node in descriptor.topology.nodes:
            status = NodeStatus(
                node=node,
                initialized=data_dir(cluster_dir, node).is_dir(),
                running=is_running(tools, cluster_dir, node),
            )
            if node.is_primary and status.running:
                try:
                    status.senders = self.probe(self.settings.host, node.port)
                except psycopg2.Error as e:
                    status.probe_error = str(e).strip()
            statuses.append(status)
        return statuses
