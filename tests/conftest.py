"""Shared fixtures: a fake engine build and a manager wired to it."""

import os
import shutil
import subprocess
from pathlib import Path

import pytest

from pgcluster.cluster import ClusterManager
from pgcluster.config import ClusterSettings, VersionRegistry
from pgcluster.monitor import SenderState


VERSION = "16.2"


class FakeEngine:
    """
    Stands in for initdb, pg_basebackup and pg_ctl.

    Creates data directories, tracks which ones are running and records
    every call. ``fail(action, dir_name)`` makes one action exit non-zero.
    """

    def __init__(self, major: str = "16"):
        self.major = major
        self.calls = []
        self.running = set()
        self.ports = {}
        self.failures = set()

    def fail(self, action: str, dir_name: str) -> None:
        self.failures.add((action, dir_name))

    def actions(self):
        """(action, data dir name) of every call except status checks."""
        return [(action, name) for action, name, _ in self.calls if action != "status"]

    def args_for(self, action: str, dir_name: str):
        for call_action, name, args in self.calls:
            if call_action == action and name == dir_name:
                return args
        raise AssertionError(f"No {action} call for {dir_name}")

    def __call__(self, cmd):
        tool = Path(cmd[0]).name
        args = list(cmd[1:])
        target = Path(args[args.index("-D") + 1])
        if tool == "initdb":
            action = "init"
        elif tool == "pg_basebackup":
            action = "backup"
        elif args[0] == "status":
            action = "status"
        else:
            action = args[-1]
        self.calls.append((action, target.name, args))

        if (action, target.name) in self.failures:
            return subprocess.CompletedProcess(cmd, 1, "", f"{tool}: simulated failure")
        return getattr(self, f"_{action}")(cmd, args, target)

    def _ok(self, cmd):
        return subprocess.CompletedProcess(cmd, 0, "", "")

    def _init(self, cmd, args, target):
        target.mkdir(parents=True)
        (target / "PG_VERSION").write_text(f"{self.major}\n")
        (target / "postgresql.conf").write_text("# defaults\n")
        (target / "pg_hba.conf").write_text("# defaults\n")
        return self._ok(cmd)

    def _backup(self, cmd, args, target):
        port = int(args[args.index("-p") + 1])
        source = self.ports.get(port)
        if source is None or str(source) not in self.running:
            return subprocess.CompletedProcess(cmd, 1, "", "pg_basebackup: could not connect")
        shutil.copytree(source, target)
        return self._ok(cmd)

    def _status(self, cmd, args, target):
        if str(target) in self.running:
            return self._ok(cmd)
        if not (target / "PG_VERSION").is_file():
            return subprocess.CompletedProcess(cmd, 4, "", "pg_ctl: directory is not a database cluster directory")
        return subprocess.CompletedProcess(cmd, 3, "", "pg_ctl: no server running")

    def _start(self, cmd, args, target):
        port = int(args[args.index("-o") + 1].split()[-1])
        self.running.add(str(target))
        self.ports[port] = target
        return self._ok(cmd)

    def _stop(self, cmd, args, target):
        self.running.discard(str(target))
        return self._ok(cmd)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def registry_root(tmp_path):
    root = tmp_path / "registry"
    (root / f"pgsql-{VERSION}" / "bin").mkdir(parents=True)
    os.symlink(f"pgsql-{VERSION}", root / "pgsql")
    return root


@pytest.fixture
def settings(registry_root):
    return ClusterSettings(root=registry_root)


@pytest.fixture
def tools(registry_root, engine):
    return VersionRegistry(registry_root, runner=engine).tools(VERSION)


def fake_probe(host, port):
    return [SenderState("node2", "streaming", "sync")]


@pytest.fixture
def manager(settings, registry_root, engine):
    return ClusterManager(
        settings,
        VersionRegistry(registry_root, runner=engine),
        probe=fake_probe,
    )


@pytest.fixture
def cluster_dir(tmp_path):
    return (tmp_path / "cluster").resolve()
