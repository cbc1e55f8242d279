#!/usr/bin/env python3
"""
Check the status of a local PostgreSQL cluster.

Shows:
- Each node's role, port and whether it is initialized and running
- The primary's WAL senders (pg_stat_replication)

Usage:
    cluster-status [--pg-version V] <datadir>
"""

import sys
from typing import List, Optional

from . import ArgumentParser, add_version_argument, load_settings
from ..cluster import ClusterManager, NodeStatus
from ..errors import ClusterError
from ..utils import Colors, print_error, print_header, print_warning


def _mark(ok: bool) -> str:
    return f"{Colors.GREEN}✓{Colors.NC}" if ok else f"{Colors.RED}✗{Colors.NC}"


def print_node_status(status: NodeStatus) -> None:
    node = status.node
    print(f"{node.server_name} ({node.role.replace('_', ' ')}, port {node.port}):")
    print(f"  Data directory: {node.data_dir_name}")
    print(f"  Initialized: {_mark(status.initialized)}")
    print(f"  Running: {_mark(status.running)}")

    if node.is_primary and status.running:
        if status.probe_error:
            print_warning(f"  Could not query replication state: {status.probe_error}")
        elif status.senders:
            print("  Replication:")
            for sender in status.senders:
                print(f"    {sender.application_name}: {sender.state} ({sender.sync_state})")
        else:
            print("  Replication: no standbys connected")


def main(argv: Optional[List[str]] = None) -> int:
    parser = ArgumentParser(
        prog="cluster-status",
        description="Show the status of a local PostgreSQL streaming-replication cluster",
    )
    parser.add_argument('datadir', help="Cluster root directory")
    add_version_argument(parser)
    args = parser.parse_args(argv)

    print_header("PostgreSQL Cluster Status")

    try:
        manager = ClusterManager(load_settings(args.pg_version))
        statuses = manager.status(args.datadir, version=args.pg_version)
    except (ClusterError, OSError) as e:
        print_error(str(e))
        return 1

    for status in statuses:
        print_node_status(status)
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
