"""Exceptions raised by pgcluster operations."""

from typing import List, Optional


class ClusterError(Exception):
    """Base class for every failure reported to the operator."""


class ArgumentError(ClusterError):
    """Malformed counts, ports, names or an empty data root."""


class ToolFailure(ClusterError):
    """An engine tool (initdb, pg_basebackup, pg_ctl) exited non-zero."""

    def __init__(self, tool: str, cmd: List[str], returncode: int, stderr: Optional[str] = None):
        self.tool = tool
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        message = f"{tool} failed with exit code {returncode}"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


class MissingDescriptor(ClusterError):
    """No persisted topology exists under the cluster root."""


class DescriptorError(ClusterError):
    """The persisted topology could not be parsed."""


class VersionNotFound(ClusterError):
    """No installed engine build matches the requested version."""
