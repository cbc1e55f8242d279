#!/usr/bin/env python3
"""
Configuration and engine build lookup for pgcluster.

Builds live under the registry root (``$PGCLUSTER_ROOT``, default
``~/.pgcluster``) as ``pgsql-<version>/bin``; the ``pgsql`` symlink in the
same directory points at the active build.

Settings are read from the first existing candidate of:

    $PGCLUSTER_CONFIG
    <root>/config/<version>.conf
    <root>/config/default.conf

and environment variables of the same name override file values.
"""

import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from .errors import ArgumentError, ToolFailure, VersionNotFound
from .utils import parse_bash_config, print_info, run_command


DEFAULT_PORT = 5432
DEFAULT_HOST = "localhost"
# addresses the primary listens on and trusts for replication
LOOPBACK_HOSTS = ("localhost", "127.0.0.1", "::1")
SERVER_PREFIX = "node"
DATADIR_PREFIX = "data"
BUILD_PREFIX = "pgsql-"
ACTIVE_LINK = "pgsql"


def get_registry_root(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Get the registry root directory."""
    environ = os.environ if environ is None else environ
    root = environ.get("PGCLUSTER_ROOT")
    if root:
        return Path(root).expanduser()
    return Path.home() / ".pgcluster"


# =============================================================================
# Configuration Sources
# =============================================================================

def config_candidates(
    root: Path,
    version: Optional[str],
    environ: Optional[Mapping[str, str]] = None,
) -> List[Path]:
    """Return configuration file candidates, most specific first."""
    environ = os.environ if environ is None else environ
    candidates = []
    explicit = environ.get("PGCLUSTER_CONFIG")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    if version:
        candidates.append(root / "config" / f"{version}.conf")
    candidates.append(root / "config" / "default.conf")
    return candidates


def resolve_config_source(candidates: List[Path]) -> Optional[Path]:
    """Return the first existing candidate."""
    for path in candidates:
        if path.is_file():
            return path
    return None


@dataclass
class ClusterSettings:
    """Settings shared by every cluster operation."""
    root: Path
    host: str = DEFAULT_HOST
    start_port: int = DEFAULT_PORT
    cluster_dir: Optional[Path] = None
    server_prefix: str = SERVER_PREFIX
    data_dir_prefix: str = DATADIR_PREFIX
    pg_ctl_timeout: Optional[int] = None
    source: Optional[Path] = None

    def __post_init__(self):
        if self.cluster_dir is None:
            self.cluster_dir = self.root / "cluster"
        if self.host not in LOOPBACK_HOSTS:
            raise ArgumentError(
                f"PGCLUSTER_HOST must be one of {', '.join(LOOPBACK_HOSTS)}, got '{self.host}'"
            )

    @classmethod
    def load(
        cls,
        root: Optional[Path] = None,
        version: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> 'ClusterSettings':
        """Load settings from the first matching configuration source."""
        environ = os.environ if environ is None else environ
        root = root or get_registry_root(environ)

        source = resolve_config_source(config_candidates(root, version, environ))
        values: Dict[str, str] = {}
        if source is not None:
            print_info(f"Using configuration from {source}")
            values.update(parse_bash_config(source))
        for key in list(environ):
            if key.startswith("PGCLUSTER_"):
                values[key] = environ[key]

        cluster_dir = values.get("PGCLUSTER_CLUSTER_DIR")
        return cls(
            root=root,
            host=values.get("PGCLUSTER_HOST") or DEFAULT_HOST,
            start_port=_as_int(values, "PGCLUSTER_PORT", DEFAULT_PORT),
            cluster_dir=Path(cluster_dir).expanduser() if cluster_dir else None,
            server_prefix=values.get("PGCLUSTER_SERVER_PREFIX") or SERVER_PREFIX,
            data_dir_prefix=values.get("PGCLUSTER_DATADIR_PREFIX") or DATADIR_PREFIX,
            pg_ctl_timeout=_as_int(values, "PGCLUSTER_PG_CTL_TIMEOUT", 0) or None,
            source=source,
        )


def _as_int(values: Dict[str, str], key: str, default: int) -> int:
    raw = values.get(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ArgumentError(f"{key} must be an integer, got '{raw}'")


# =============================================================================
# Engine Builds
# =============================================================================

Runner = Callable[[List[str]], subprocess.CompletedProcess]


@dataclass
class EngineTools:
    """Executables of one installed engine build."""
    bin_dir: Path
    version: Optional[str] = None
    runner: Runner = field(default=run_command, repr=False)

    @property
    def psql(self) -> Path:
        return self.bin_dir / "psql"

    def run(self, tool: str, args: List[str]):
        """Run a tool from this build and return the CompletedProcess."""
        return self.runner([str(self.bin_dir / tool)] + list(args))

    def execute(self, tool: str, args: List[str]):
        """Run a tool, raising ToolFailure on a non-zero exit."""
        result = self.run(tool, args)
        if result.returncode != 0:
            raise ToolFailure(tool, result.args, result.returncode, result.stderr)
        return result


class VersionRegistry:
    """Resolves version identifiers to installed engine builds."""

    def __init__(self, root: Path, runner: Runner = run_command):
        self.root = root
        self.runner = runner

    def active_version(self) -> Optional[str]:
        """Return the version the ``pgsql`` symlink points at, if any."""
        link = self.root / ACTIVE_LINK
        if not link.is_symlink():
            return None
        name = Path(os.readlink(link)).name
        if name.startswith(BUILD_PREFIX):
            return name[len(BUILD_PREFIX):]
        return None

    def bin_dir(self, version: Optional[str]) -> Optional[Path]:
        """Return the executable directory of a build, or None."""
        if not version:
            return None
        candidate = self.root / f"{BUILD_PREFIX}{version}" / "bin"
        return candidate if candidate.is_dir() else None

    def tools(self, version: Optional[str] = None) -> EngineTools:
        """Return the tools of a build; defaults to the active one."""
        version = version or self.active_version()
        if not version:
            raise VersionNotFound(
                f"No version given and no active build linked at {self.root / ACTIVE_LINK}"
            )
        bin_dir = self.bin_dir(version)
        if bin_dir is None:
            raise VersionNotFound(f"PostgreSQL {version} is not installed under {self.root}")
        return EngineTools(bin_dir=bin_dir, version=version, runner=self.runner)
