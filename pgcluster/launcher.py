#!/usr/bin/env python3
"""
Node start/stop through pg_ctl.

Every call waits (-w) for pg_ctl to report the node ready or stopped.
"""

from pathlib import Path
from typing import List, Optional

from .bootstrap import data_dir
from .config import EngineTools
from .errors import ToolFailure
from .topology import Node
from .utils import print_error, print_info, print_step, print_success


# pg_ctl status exit codes
STATUS_NOT_RUNNING = 3
STATUS_NO_DATA_DIR = 4


def log_file(cluster_dir: Path, node: Node) -> Path:
    return Path(cluster_dir) / f"{node.server_name}.log"


def _timeout_args(timeout: Optional[int]) -> List[str]:
    return ["-t", str(timeout)] if timeout else []


def is_running(tools: EngineTools, cluster_dir: Path, node: Node) -> bool:
    """
    Check whether a node's postmaster is running.

    A missing data directory, or one that was never initialized, counts as
    not running. Any other pg_ctl status failure raises.

    Raises:
        ToolFailure: pg_ctl status could not determine the state
    """
    target = data_dir(cluster_dir, node)
    if not target.is_dir():
        return False
    result = tools.run("pg_ctl", ["status", "-D", str(target)])
    if result.returncode == 0:
        return True
    if result.returncode == STATUS_NOT_RUNNING:
        return False
    if result.returncode == STATUS_NO_DATA_DIR and not (target / "PG_VERSION").is_file():
        return False
    raise ToolFailure("pg_ctl", result.args, result.returncode, result.stderr)


def start_node(
    tools: EngineTools,
    cluster_dir: Path,
    node: Node,
    timeout: Optional[int] = None,
) -> bool:
    """
    Start a node and wait until it accepts connections.

    Returns:
        True if the node was started, False if it was already running
    """
    if is_running(tools, cluster_dir, node):
        print_info(f"{node.server_name} is already running on port {node.port}")
        return False

    print_step(f"Starting {node.server_name} on port {node.port}...")
    tools.execute("pg_ctl", [
        "-D", str(data_dir(cluster_dir, node)),
        "-o", f"-p {node.port}",
        "-l", str(log_file(cluster_dir, node)),
        "-w",
    ] + _timeout_args(timeout) + ["start"])
    print_success(f"{node.server_name} started")
    return True


def stop_node(
    tools: EngineTools,
    cluster_dir: Path,
    node: Node,
    timeout: Optional[int] = None,
) -> bool:
    """
    Stop a node (fast shutdown) and wait for it to exit.

    Returns:
        True if the node was stopped, False if it was not running
    """
    if not is_running(tools, cluster_dir, node):
        print_info(f"{node.server_name} is not running")
        return False

    print_step(f"Stopping {node.server_name} (port {node.port})...")
    tools.execute("pg_ctl", [
        "-D", str(data_dir(cluster_dir, node)),
        "-m", "fast",
        "-w",
    ] + _timeout_args(timeout) + ["stop"])
    print_success(f"{node.server_name} stopped")
    return True


def stop_nodes(
    tools: EngineTools,
    cluster_dir: Path,
    nodes: List[Node],
    timeout: Optional[int] = None,
) -> List[Node]:
    """
    Stop nodes in the given order, continuing past failures.

    Returns:
        Nodes that failed to stop
    """
    failed = []
    for node in nodes:
        try:
            stop_node(tools, cluster_dir, node, timeout)
        except ToolFailure as e:
            print_error(f"Failed to stop {node.server_name}: {e}")
            failed.append(node)
    return failed
