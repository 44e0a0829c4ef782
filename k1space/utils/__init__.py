"""Utility helpers shared by the stores, generator and operations."""
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Union

import yaml

from .normalize import normalize_path, normalize_paths, env_segment, shell_quote, shell_unquote


def utc_now() -> str:
    """Current UTC time as an RFC3339 string."""
    return datetime.now(timezone.utc).replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ")


def write_yaml_atomic(data, path: Union[str, Path]) -> None:
    """Write a document in YAML format, replacing the file in one step.

    Args:
        data: Document to serialize
        path: Destination path; parent directories are created
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise


def is_empty_dir(path: Union[str, Path]) -> bool:
    path = Path(path)
    try:
        return path.is_dir() and not any(path.iterdir())
    except OSError:
        return False


def read_env_file(path: Union[str, Path]) -> Dict[str, str]:
    """Parse ``export NAME="value"`` lines."""
    values = {}
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            name, value = line.split("=", 1)
            if name.startswith("export "):
                name = name[len("export "):]
            values[name.strip()] = shell_unquote(value)
    return values

__all__ = [
    "utc_now",
    "write_yaml_atomic",
    "is_empty_dir",
    "read_env_file",
    "normalize_path",
    "normalize_paths",
    "env_segment",
    "shell_quote",
    "shell_unquote",
]
