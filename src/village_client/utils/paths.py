# src/village_client/utils/paths.py
"""
Where the client keeps its files.

Everything lives under one root: next to the executable for a frozen
(PyInstaller) build, otherwise the current working directory. Library users
usually bypass this entirely by passing `session_file` to ClientConfig or by
setting VILLAGE_SESSION_FILE.
"""

import sys
from pathlib import Path
from typing import Optional, Union

SESSION_FILENAME = "session.json"
LOGS_DIRNAME = "logs"


def get_default_root() -> Path:
    """Executable directory when frozen, else the working directory."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent
    return Path.cwd()


def _resolve_root(root: Optional[Union[Path, str]]) -> Path:
    return Path(root) if root else get_default_root()


def get_logs_dir(root: Optional[Union[Path, str]] = None) -> Path:
    """The CLI log directory under `root`; created on first use."""
    logs_dir = _resolve_root(root) / LOGS_DIRNAME
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def get_data_file(filename: str, root: Optional[Union[Path, str]] = None) -> Path:
    """Path of `filename` under `root`. Nothing is created."""
    return _resolve_root(root) / filename


def get_session_file(root: Optional[Union[Path, str]] = None) -> Path:
    """Default location of the persisted session document."""
    return get_data_file(SESSION_FILENAME, root)
