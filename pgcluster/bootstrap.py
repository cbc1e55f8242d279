#!/usr/bin/env python3
"""
Node bootstrap: on-disk initialization of primary and standby data directories.

A node whose data directory already exists is left alone, so re-running
setup against an initialized cluster root does no initdb/pg_basebackup work.
"""

from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_HOST, EngineTools
from .topology import ClusterTopology, Node
from .utils import append_lines, print_step, print_success, print_warning


INITDB_OPTIONS = ["--encoding=UTF8", "--locale=C"]
BASEBACKUP_OPTIONS = ["-X", "stream", "-P", "-c", "fast"]

# standby.signal replaced recovery.conf in PostgreSQL 12
SIGNAL_FILE_MAJOR = 12

CONFIG_MARKER = "# Added by pgcluster"


def data_dir(cluster_dir: Path, node: Node) -> Path:
    return Path(cluster_dir) / node.data_dir_name


def primary_settings(topology: ClusterTopology) -> List[str]:
    """Return postgresql.conf lines enabling streaming replication on the primary."""
    lines = [
        CONFIG_MARKER,
        "listen_addresses = 'localhost'",
        "wal_level = replica",
        f"max_wal_senders = {len(topology.nodes)}",
        "hot_standby = on",
    ]
    sync_names = [node.server_name for node in topology.sync_standbys]
    if sync_names:
        lines.append(
            f"synchronous_standby_names = 'FIRST {len(sync_names)} ({', '.join(sync_names)})'"
        )
    return lines


def replication_hba_entries() -> List[str]:
    """Return pg_hba.conf lines trusting local replication connections."""
    return [
        CONFIG_MARKER,
        "local   replication     all                     trust",
        "host    replication     all     127.0.0.1/32    trust",
        "host    replication     all     ::1/128         trust",
    ]


def primary_conninfo(primary: Node, node: Node, host: str = DEFAULT_HOST) -> str:
    return f"host={host} port={primary.port} application_name={node.server_name}"


def read_major_version(directory: Path) -> Optional[int]:
    """Read the major version from a data directory's PG_VERSION file."""
    try:
        raw = (directory / "PG_VERSION").read_text().strip()
    except OSError:
        return None
    try:
        return int(raw.split(".")[0])
    except ValueError:
        return None


def init_primary(tools: EngineTools, cluster_dir: Path, topology: ClusterTopology) -> bool:
    """
    Initialize the primary's data directory.

    Synchronous standby names and sender capacity are written here, once;
    a cluster cannot be grown after its primary exists.

    Returns:
        True if the directory was created, False if it already existed
    """
    primary = topology.primary
    target = data_dir(cluster_dir, primary)
    if target.exists():
        print_warning(f"Data directory {target} already exists, skipping initdb for {primary.server_name}")
        return False

    print_step(f"Initializing primary {primary.server_name} in {target}...")
    tools.execute("initdb", INITDB_OPTIONS + ["-D", str(target)])

    append_lines(target / "postgresql.conf", primary_settings(topology))
    append_lines(target / "pg_hba.conf", replication_hba_entries())
    print_success(f"Primary {primary.server_name} initialized")
    return True


def configure_standby(target: Path, primary: Node, node: Node, host: str = DEFAULT_HOST) -> None:
    """Write standby configuration into a freshly copied data directory."""
    conninfo = primary_conninfo(primary, node, host)
    major = read_major_version(target)

    if major is not None and major < SIGNAL_FILE_MAJOR:
        append_lines(target / "recovery.conf", [
            CONFIG_MARKER,
            "standby_mode = 'on'",
            f"primary_conninfo = '{conninfo}'",
        ])
    else:
        (target / "standby.signal").touch()
        append_lines(target / "postgresql.conf", [
            CONFIG_MARKER,
            "hot_standby = on",
            f"primary_conninfo = '{conninfo}'",
        ])


def init_standby(
    tools: EngineTools,
    cluster_dir: Path,
    topology: ClusterTopology,
    node: Node,
    host: str = DEFAULT_HOST,
) -> bool:
    """
    Create a standby from a base backup of the running primary.

    Returns:
        True if the directory was created, False if it already existed
    """
    target = data_dir(cluster_dir, node)
    if target.exists():
        print_warning(f"Data directory {target} already exists, skipping base backup for {node.server_name}")
        return False

    primary = topology.primary
    print_step(f"Taking base backup of {primary.server_name} for {node.server_name}...")
    tools.execute(
        "pg_basebackup",
        ["-h", host, "-p", str(primary.port), "-D", str(target)] + BASEBACKUP_OPTIONS,
    )

    configure_standby(target, primary, node, host)
    print_success(f"Standby {node.server_name} initialized ({node.role.replace('_', ' ')})")
    return True
