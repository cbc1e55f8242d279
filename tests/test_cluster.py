import subprocess
from pathlib import Path

import psycopg2
import pytest

from pgcluster.cluster import ClusterManager
from pgcluster.config import VersionRegistry
from pgcluster.descriptor import descriptor_path, load
from pgcluster.errors import (
    ArgumentError,
    ClusterError,
    MissingDescriptor,
    ToolFailure,
    VersionNotFound,
)


def _running(engine):
    return sorted(Path(p).name for p in engine.running)


# -----------------------------------------------------------------------------
# setup
# -----------------------------------------------------------------------------

def test_setup_one_sync_one_async(manager, engine, cluster_dir, capsys):
    topology = manager.setup(1, 1, cluster_dir, start_port=5432)

    assert topology.primary.port == 5432
    assert topology.sync_standbys[0].port == 5433
    assert topology.async_standbys[0].port == 5434
    assert "ALL_PORTS=(5432 5433 5434)" in descriptor_path(cluster_dir).read_text()
    assert load(cluster_dir).version == "16.2"

    assert engine.actions() == [
        ("init", "data1"),
        ("start", "data1"),
        ("backup", "data2"),
        ("start", "data2"),
        ("backup", "data3"),
        ("start", "data3"),
    ]
    assert _running(engine) == ["data1", "data2", "data3"]

    out = capsys.readouterr().out
    assert f"stop-cluster {cluster_dir}" in out
    assert "-p 5432 postgres" in out


def test_setup_uses_settings_defaults(manager, settings, engine):
    topology = manager.setup(0, 1)

    assert topology.ports == [5432, 5433]
    assert (settings.cluster_dir / "cluster").is_file()


def test_second_setup_reuses_descriptor(manager, engine, cluster_dir):
    manager.setup(1, 1, cluster_dir)
    before = descriptor_path(cluster_dir).read_text()
    calls = len(engine.actions())

    topology = manager.setup(3, 0, cluster_dir, start_port=7000)

    assert topology.names == ["node1", "node2", "node3"]
    assert topology.ports == [5432, 5433, 5434]
    assert engine.actions()[calls:] == []
    assert descriptor_path(cluster_dir).read_text() == before


def test_setup_restarts_stopped_nodes_without_reinitializing(manager, engine, cluster_dir):
    manager.setup(1, 0, cluster_dir)
    manager.stop(cluster_dir)
    calls = len(engine.actions())

    manager.setup(1, 0, cluster_dir)

    assert engine.actions()[calls:] == [("start", "data1"), ("start", "data2")]


def test_failed_start_aborts_bring_up(manager, engine, cluster_dir):
    engine.fail("start", "data2")

    with pytest.raises(ToolFailure):
        manager.setup(1, 1, cluster_dir)

    assert ("backup", "data3") not in engine.actions()
    assert _running(engine) == ["data1"]
    # persisted anyway so stop/remove can reach the running primary
    assert load(cluster_dir).topology.names == ["node1", "node2", "node3"]


def test_invalid_counts_have_no_side_effects(manager, engine, cluster_dir):
    with pytest.raises(ArgumentError):
        manager.setup(-1, 0, cluster_dir)

    assert not cluster_dir.exists()
    assert engine.calls == []


def test_empty_cluster_dir_rejected(manager):
    with pytest.raises(ArgumentError):
        manager.setup(1, 0, "")


def test_unknown_version_is_fatal(manager, engine, cluster_dir):
    with pytest.raises(VersionNotFound):
        manager.setup(1, 0, cluster_dir, version="9.9")

    assert not cluster_dir.exists()
    assert engine.calls == []


def test_no_active_build_is_fatal(settings, tmp_path, engine, cluster_dir):
    manager = ClusterManager(settings, VersionRegistry(tmp_path / "empty", runner=engine))

    with pytest.raises(VersionNotFound):
        manager.setup(0, 0, cluster_dir)


# -----------------------------------------------------------------------------
# stop
# -----------------------------------------------------------------------------

def test_stop_in_reverse_dependency_order(manager, engine, cluster_dir):
    manager.setup(2, 1, cluster_dir)
    calls = len(engine.actions())

    assert manager.stop(cluster_dir) == []

    assert engine.actions()[calls:] == [
        ("stop", "data4"),
        ("stop", "data3"),
        ("stop", "data2"),
        ("stop", "data1"),
    ]
    assert engine.running == set()


def test_stop_single_node(manager, engine, cluster_dir):
    manager.setup(1, 1, cluster_dir)

    manager.stop(cluster_dir, ["node3"])

    assert _running(engine) == ["data1", "data2"]


def test_stop_unknown_node_stops_nothing(manager, engine, cluster_dir):
    manager.setup(1, 1, cluster_dir)

    with pytest.raises(ArgumentError):
        manager.stop(cluster_dir, ["node3", "a1"])

    assert _running(engine) == ["data1", "data2", "data3"]


def test_stop_without_descriptor(manager, cluster_dir):
    cluster_dir.mkdir()

    with pytest.raises(MissingDescriptor):
        manager.stop(cluster_dir)


def test_stop_is_best_effort(manager, engine, cluster_dir):
    manager.setup(1, 1, cluster_dir)
    engine.fail("stop", "data2")

    failed = manager.stop(cluster_dir)

    assert [node.server_name for node in failed] == ["node2"]
    assert _running(engine) == ["data2"]


# -----------------------------------------------------------------------------
# remove
# -----------------------------------------------------------------------------

def test_remove_stops_then_deletes(manager, engine, cluster_dir):
    manager.setup(1, 1, cluster_dir)

    manager.remove(cluster_dir)

    assert engine.running == set()
    assert not cluster_dir.exists()


def test_remove_without_descriptor_leaves_directory(manager, engine, cluster_dir):
    cluster_dir.mkdir()
    (cluster_dir / "keep.txt").write_text("data")

    with pytest.raises(MissingDescriptor):
        manager.remove(cluster_dir)

    assert (cluster_dir / "keep.txt").exists()
    assert engine.calls == []


def test_remove_keeps_directory_when_stop_fails(manager, engine, cluster_dir):
    manager.setup(1, 0, cluster_dir)
    engine.fail("stop", "data1")

    with pytest.raises(ClusterError, match="node1"):
        manager.remove(cluster_dir)
    assert cluster_dir.exists()

    manager.remove(cluster_dir, force=True)
    assert not cluster_dir.exists()


def test_remove_keeps_directory_when_status_is_unknown(monkeypatch, manager, engine, cluster_dir):
    manager.setup(0, 0, cluster_dir)

    def missing_pg_ctl(cmd, args, target):
        return subprocess.CompletedProcess(cmd, 127, "", f"Command not found: {cmd[0]}")

    monkeypatch.setattr(engine, "_status", missing_pg_ctl)

    with pytest.raises(ClusterError, match="node1"):
        manager.remove(cluster_dir)

    assert cluster_dir.exists()
    assert _running(engine) == ["data1"]


# -----------------------------------------------------------------------------
# status
# -----------------------------------------------------------------------------

def test_status_reports_nodes_and_senders(manager, engine, cluster_dir):
    manager.setup(1, 1, cluster_dir)
    manager.stop(cluster_dir, ["node3"])

    statuses = manager.status(cluster_dir)

    assert [(s.node.server_name, s.initialized, s.running) for s in statuses] == [
        ("node1", True, True),
        ("node2", True, True),
        ("node3", True, False),
    ]
    assert statuses[0].senders[0].application_name == "node2"
    assert statuses[1].senders == []


def test_status_probe_failure(settings, registry_root, engine, cluster_dir):
    def broken_probe(host, port):
        raise psycopg2.OperationalError("connection refused")

    manager = ClusterManager(settings, VersionRegistry(registry_root, runner=engine), probe=broken_probe)
    manager.setup(0, 0, cluster_dir)

    statuses = manager.status(cluster_dir)

    assert statuses[0].running
    assert statuses[0].probe_error == "connection refused"
