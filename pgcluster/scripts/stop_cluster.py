#!/usr/bin/env python3
"""
Stop a local PostgreSQL cluster.

Nodes are stopped in reverse startup order: asynchronous standbys, then
synchronous standbys, then the primary. A node that fails to stop is
reported and the remaining nodes are still stopped.

Usage:
    stop-cluster [--node n1[,n2,...]] [--pg-version V] <datadir>
"""

import sys
from typing import List, Optional

from . import ArgumentParser, add_version_argument, load_settings, parse_node_filter
from ..cluster import ClusterManager
from ..errors import ClusterError
from ..utils import print_error, print_header


def main(argv: Optional[List[str]] = None) -> int:
    parser = ArgumentParser(
        prog="stop-cluster",
        description="Stop a local PostgreSQL streaming-replication cluster",
    )
    parser.add_argument('datadir', help="Cluster root directory")
    parser.add_argument(
        '--node', '-n',
        metavar='NAMES',
        help="Comma-separated server names to stop (default: all)"
    )
    add_version_argument(parser)
    args = parser.parse_args(argv)

    print_header("Stopping PostgreSQL Cluster")

    try:
        names = parse_node_filter(args.node)
        manager = ClusterManager(load_settings(args.pg_version))
        failed = manager.stop(args.datadir, names, version=args.pg_version)
    except (ClusterError, OSError) as e:
        print_error(str(e))
        return 1

    if failed:
        print_error(f"Could not stop: {', '.join(node.server_name for node in failed)}")
        return 1

    print_header("Cluster Stopped!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
