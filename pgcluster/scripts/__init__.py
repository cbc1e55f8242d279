"""Command-line entry points: setup-cluster, stop-cluster, remove-cluster, cluster-status."""

import argparse
import sys
from typing import List, Optional

from ..config import ClusterSettings, VersionRegistry, get_registry_root
from ..errors import ArgumentError


class ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser exiting with status 1 on usage errors."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def add_version_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--pg-version',
        metavar='VERSION',
        help="PostgreSQL build to use (default: the active build, or the one the cluster was created with)"
    )


def load_settings(version: Optional[str] = None) -> ClusterSettings:
    """Load settings for the given (or active) engine version."""
    root = get_registry_root()
    version = version or VersionRegistry(root).active_version()
    return ClusterSettings.load(root=root, version=version)


def parse_port(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise ArgumentError(f"Port must be an integer, got '{value}'")


def parse_node_filter(value: Optional[str]) -> Optional[List[str]]:
    """Split ``n1,n2,...`` into names; None means every node."""
    if value is None:
        return None
    names = [name.strip() for name in value.split(",") if name.strip()]
    if not names:
        raise ArgumentError("--node needs at least one node name")
    return names
