#!/usr/bin/env python3
"""
Persisted cluster descriptor.

The descriptor lives at ``<cluster_root>/cluster`` and records the topology
a cluster was created with. Once written it is authoritative: setup reuses
it, stop/remove/status read nothing else.

Format (plain assignments, parsed, never sourced)::

    PG_VERSION=16.2
    PRIMARY_NAME=node1
    PRIMARY_DATADIR=data1
    PRIMARY_PORT=5432
    SYNC_NAMES=(node2)
    SYNC_DATADIRS=(data2)
    SYNC_PORTS=(5433)
    ASYNC_NAMES=(node3)
    ASYNC_DATADIRS=(data3)
    ASYNC_PORTS=(5434)
    ALL_NAMES=(node1 node2 node3)
    ALL_DATADIRS=(data1 data2 data3)
    ALL_PORTS=(5432 5433 5434)
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from .errors import DescriptorError, MissingDescriptor
from .topology import ASYNC_STANDBY, PRIMARY, SYNC_STANDBY, ClusterTopology, Node


DESCRIPTOR_NAME = "cluster"

_LINE = re.compile(r'^([A-Z_][A-Z0-9_]*)=(.*)$')
_ARRAY = re.compile(r'^\((.*)\)$')

_ROLE_KEYS = (
    (PRIMARY, "PRIMARY"),
    (SYNC_STANDBY, "SYNC"),
    (ASYNC_STANDBY, "ASYNC"),
)


@dataclass
class ClusterDescriptor:
    """A topology plus the engine version it was created with."""
    topology: ClusterTopology
    version: Optional[str] = None


def descriptor_path(cluster_dir: Path) -> Path:
    """Get the path of the descriptor file for a cluster root."""
    return Path(cluster_dir) / DESCRIPTOR_NAME


def descriptor_exists(cluster_dir: Path) -> bool:
    return descriptor_path(cluster_dir).is_file()


def _array(values: List) -> str:
    return "(" + " ".join(str(v) for v in values) + ")"


def render(descriptor: ClusterDescriptor) -> str:
    """Render a descriptor as text."""
    topology = descriptor.topology
    primary = topology.primary
    lines = ["# pgcluster topology descriptor; generated, do not edit"]
    if descriptor.version:
        lines.append(f"PG_VERSION={descriptor.version}")
    lines += [
        f"PRIMARY_NAME={primary.server_name}",
        f"PRIMARY_DATADIR={primary.data_dir_name}",
        f"PRIMARY_PORT={primary.port}",
    ]
    for prefix, nodes in (("SYNC", topology.sync_standbys), ("ASYNC", topology.async_standbys)):
        lines += [
            f"{prefix}_NAMES={_array([n.server_name for n in nodes])}",
            f"{prefix}_DATADIRS={_array([n.data_dir_name for n in nodes])}",
            f"{prefix}_PORTS={_array([n.port for n in nodes])}",
        ]
    lines += [
        f"ALL_NAMES={_array(topology.names)}",
        f"ALL_DATADIRS={_array([n.data_dir_name for n in topology.nodes])}",
        f"ALL_PORTS={_array(topology.ports)}",
    ]
    return "\n".join(lines) + "\n"


def store(cluster_dir: Path, descriptor: ClusterDescriptor) -> Path:
    """Write the descriptor atomically and return its path."""
    path = descriptor_path(cluster_dir)
    tmp_path = path.with_name(f".{DESCRIPTOR_NAME}.tmp")
    tmp_path.write_text(render(descriptor))
    os.replace(tmp_path, path)
    return path


def parse(text: str) -> Dict[str, Union[str, List[str]]]:
    """Parse descriptor text into scalars and lists."""
    values: Dict[str, Union[str, List[str]]] = {}
    for lineno, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if not line or line.startswith('#'):
            continue
        match = _LINE.match(line)
        if not match:
            raise DescriptorError(f"Line {lineno}: cannot parse '{raw}'")
        key, value = match.groups()
        array = _ARRAY.match(value)
        values[key] = array.group(1).split() if array else value.strip('"\'')
    return values


def _scalar(values: Dict, key: str) -> str:
    value = values.get(key)
    if not isinstance(value, str) or not value:
        raise DescriptorError(f"Missing or invalid {key}")
    return value


def _list(values: Dict, key: str) -> List[str]:
    value = values.get(key)
    if not isinstance(value, list):
        raise DescriptorError(f"Missing or invalid {key}")
    return value


def _ports(raw: List[str], key: str) -> List[int]:
    try:
        return [int(port) for port in raw]
    except ValueError:
        raise DescriptorError(f"{key} must contain integers, got {raw}")


def _role_nodes(values: Dict, role: str, prefix: str) -> List[Node]:
    if role == PRIMARY:
        names = [_scalar(values, "PRIMARY_NAME")]
        datadirs = [_scalar(values, "PRIMARY_DATADIR")]
        ports = _ports([_scalar(values, "PRIMARY_PORT")], "PRIMARY_PORT")
    else:
        names = _list(values, f"{prefix}_NAMES")
        datadirs = _list(values, f"{prefix}_DATADIRS")
        ports = _ports(_list(values, f"{prefix}_PORTS"), f"{prefix}_PORTS")
    if not len(names) == len(datadirs) == len(ports):
        raise DescriptorError(f"{prefix} lists have different lengths")
    return [Node(role, name, datadir, port) for name, datadir, port in zip(names, datadirs, ports)]


def load(cluster_dir: Path) -> ClusterDescriptor:
    """
    Load the descriptor of a cluster root.

    Raises:
        MissingDescriptor: no descriptor file exists
        DescriptorError: the file exists but is malformed
    """
    path = descriptor_path(cluster_dir)
    if not path.is_file():
        raise MissingDescriptor(f"No cluster descriptor found at {path}")

    values = parse(path.read_text())
    nodes = []
    for role, prefix in _ROLE_KEYS:
        nodes += _role_nodes(values, role, prefix)

    merged = (
        _list(values, "ALL_NAMES"),
        _list(values, "ALL_DATADIRS"),
        _ports(_list(values, "ALL_PORTS"), "ALL_PORTS"),
    )
    expected = (
        [n.server_name for n in nodes],
        [n.data_dir_name for n in nodes],
        [n.port for n in nodes],
    )
    if merged != expected:
        raise DescriptorError(f"Merged node lists in {path} disagree with the per-role lists")

    try:
        topology = ClusterTopology(nodes)
    except ValueError as e:
        raise DescriptorError(f"Invalid topology in {path}: {e}")

    version = values.get("PG_VERSION")
    if not isinstance(version, str) or not version:
        version = None
    return ClusterDescriptor(topology=topology, version=version)
