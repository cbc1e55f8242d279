#!/usr/bin/env python3
"""
Common utilities for pgcluster.

This module provides shared functionality for:
- Console output formatting
- Command execution
- Bash-style configuration parsing
"""

import os
import re
import subprocess
import sys
from pathlib import Path
from typing import Dict, List


# =============================================================================
# Console Output Formatting
# =============================================================================

class Colors:
    """ANSI color codes for terminal output."""
    RED = '\033[0;31m'
    GREEN = '\033[0;32m'
    YELLOW = '\033[1;33m'
    BLUE = '\033[0;34m'
    CYAN = '\033[0;36m'
    BOLD = '\033[1m'
    NC = '\033[0m'  # No Color

    @staticmethod
    def disable() -> None:
        """Disable colors."""
        Colors.RED = ''
        Colors.GREEN = ''
        Colors.YELLOW = ''
        Colors.BLUE = ''
        Colors.CYAN = ''
        Colors.BOLD = ''
        Colors.NC = ''


if os.environ.get("NO_COLOR") or not sys.stdout.isatty():
    Colors.disable()


def print_header(message: str) -> None:
    """Print a header message with decorative border."""
    print()
    print(f"{Colors.BLUE}╔════════════════════════════════════════════════════════════╗{Colors.NC}")
    print(f"{Colors.BLUE}║{Colors.NC} {message:<58} {Colors.BLUE}║{Colors.NC}")
    print(f"{Colors.BLUE}╚════════════════════════════════════════════════════════════╝{Colors.NC}")
    print()


def print_step(message: str) -> None:
    """Print a step message."""
    print(f"{Colors.YELLOW}▶ {message}{Colors.NC}")


def print_success(message: str) -> None:
    """Print a success message."""
    print(f"{Colors.GREEN}✓ {message}{Colors.NC}")


def print_error(message: str) -> None:
    """Print an error message."""
    print(f"{Colors.RED}✗ {message}{Colors.NC}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    print(f"{Colors.YELLOW}⚠ {message}{Colors.NC}")


def print_info(message: str) -> None:
    """Print an info message."""
    print(f"{Colors.CYAN}ℹ {message}{Colors.NC}")


# =============================================================================
# Command Execution
# =============================================================================

def run_command(cmd: List[str]) -> subprocess.CompletedProcess:
    """
    Run a command and return the result.

    Args:
        cmd: Command and arguments as a list

    Returns:
        CompletedProcess object with captured text output
    """
    try:
        return subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError:
        return subprocess.CompletedProcess(cmd, 127, "", f"Command not found: {cmd[0]}")


# =============================================================================
# Configuration Files
# =============================================================================

_ASSIGNMENT = re.compile(r'^([A-Z_][A-Z0-9_]*)=["\']?([^"\'#\n]*)["\']?')


def parse_bash_config(config_path: Path) -> Dict[str, str]:
    """
    Parse bash-style configuration file (KEY=VALUE format).
    Handles simple variable assignments and ignores functions.
    """
    config = {}

    if not config_path.exists():
        return config

    for line in config_path.read_text().split('\n'):
        line = line.strip()
        if not line or line.startswith('#') or line.startswith('function '):
            continue

        match = _ASSIGNMENT.match(line)
        if match:
            key, value = match.groups()
            config[key] = value.strip()

    return config


def append_lines(path: Path, lines: List[str]) -> None:
    """Append lines to a text file, creating it if needed."""
    with open(path, "a") as f:
        f.write("\n".join(lines) + "\n")
