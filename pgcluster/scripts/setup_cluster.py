#!/usr/bin/env python3
"""
Set up a local PostgreSQL streaming-replication cluster.

Creates one primary plus the requested synchronous and asynchronous
standbys, starting each one before the next is copied from the primary.
Running it again against the same data directory reuses the recorded
topology and only starts nodes that are not running.

Usage:
    setup-cluster [--datadir D] [--port P] [--pg-version V] <sync>:<async>

Examples:
    setup-cluster 1:1                      # primary, 1 sync, 1 async standby
    setup-cluster --port 6000 2:0          # primary on 6000, sync on 6001/6002
    setup-cluster --datadir ~/demo 0:0     # primary only
"""

import sys
from typing import List, Optional

from . import ArgumentParser, add_version_argument, load_settings, parse_port
from ..cluster import ClusterManager
from ..errors import ClusterError
from ..topology import parse_counts
from ..utils import print_error, print_header


def main(argv: Optional[List[str]] = None) -> int:
    parser = ArgumentParser(
        prog="setup-cluster",
        description="Set up a local PostgreSQL streaming-replication cluster",
    )
    parser.add_argument(
        'counts',
        metavar='SYNC:ASYNC',
        help="Number of synchronous and asynchronous standbys, e.g. 1:2"
    )
    parser.add_argument(
        '--datadir', '-d',
        help="Cluster root directory (default: PGCLUSTER_CLUSTER_DIR or <root>/cluster)"
    )
    parser.add_argument(
        '--port', '-p',
        help="Port of the primary; standbys use the following ports (default: 5432)"
    )
    add_version_argument(parser)
    args = parser.parse_args(argv)

    try:
        sync_count, async_count = parse_counts(args.counts)
        port = parse_port(args.port)
        settings = load_settings(args.pg_version)
        manager = ClusterManager(settings)

        print_header("PostgreSQL Cluster Setup")
        print("Configuration:")
        print(f"  Cluster directory: {args.datadir or settings.cluster_dir}")
        print(f"  Primary port: {port if port is not None else settings.start_port}")
        print(f"  Synchronous standbys: {sync_count}")
        print(f"  Asynchronous standbys: {async_count}")
        print()

        manager.setup(
            sync_count,
            async_count,
            cluster_dir=args.datadir,
            start_port=port,
            version=args.pg_version,
        )
    except (ClusterError, OSError) as e:
        print_error(str(e))
        return 1

    print()
    print_header("Setup Complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
