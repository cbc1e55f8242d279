#!/usr/bin/env python3
"""
Remove a local PostgreSQL cluster.

Stops every node and deletes the cluster root, including all data
directories and the topology descriptor. If a node cannot be stopped the
directory is kept unless --force is given.

Usage:
    remove-cluster [--force] [--pg-version V] <datadir>
"""

import sys
from typing import List, Optional

from . import ArgumentParser, add_version_argument, load_settings
from ..cluster import ClusterManager
from ..errors import ClusterError
from ..utils import print_error, print_header


def main(argv: Optional[List[str]] = None) -> int:
    parser = ArgumentParser(
        prog="remove-cluster",
        description="Stop and delete a local PostgreSQL streaming-replication cluster",
    )
    parser.add_argument('datadir', help="Cluster root directory")
    parser.add_argument(
        '--force', '-f',
        action='store_true',
        help="Delete the directory even if some nodes could not be stopped"
    )
    add_version_argument(parser)
    args = parser.parse_args(argv)

    print_header("Removing PostgreSQL Cluster")

    try:
        manager = ClusterManager(load_settings(args.pg_version))
        manager.remove(args.datadir, force=args.force, version=args.pg_version)
    except (ClusterError, OSError) as e:
        print_error(str(e))
        return 1

    print_header("Cluster Removed!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
