"""Locate the kubefirst binary and discover the flags it accepts per provider."""
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import Config
from .errors import CommandError

logger = logging.getLogger("k1space.kubefirst")


def find_global_binary() -> Optional[str]:
    return shutil.which("kubefirst")


def local_binary_path(home: Path = None) -> Path:
    home = Path(home) if home else Config.home()
    return home / ".repositories" / "kubefirst" / "kubefirst"


def known_binaries(home: Path = None) -> List[Tuple[str, str]]:
    """(label, path) for the global binary on PATH and the local build, when present."""
    found = []
    global_path = find_global_binary()
    if global_path:
        found.append(("global", global_path))
    local_path = local_binary_path(home)
    if local_path.exists():
        found.append(("local", str(local_path)))
    return found


def parse_help_flags(output: str) -> Dict[str, str]:
    """Parse ``--flag description`` lines of a cobra help screen."""
    flags = {}
    for line in output.splitlines():
        line = line.strip()
        if not line.startswith("--"):
            continue
        parts = line.split(None, 1)
        name = parts[0][2:].rstrip(",")
        # "--flag string   description" carries a type column
        description = parts[1].strip() if len(parts) > 1 else ""
        if name and name != "help":
            flags[name] = description
    return flags


def fetch_flags(binary: str, provider: str, timeout: int = None) -> Dict[str, str]:
    """Run ``<binary> <provider> create --help`` and return flag -> description."""
    timeout = timeout or Config.COMMAND_TIMEOUT
    cmd = [binary, provider.lower(), "create", "--help"]
    logger.info("Executing kubefirst command: %s", " ".join(cmd))
    if not os.path.exists(binary) and shutil.which(binary) is None:
        raise CommandError(f"kubefirst binary not found at {binary}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise CommandError(f"kubefirst help timed out after {timeout}s") from e
    except OSError as e:
        raise CommandError(f"error running kubefirst help: {e}") from e
    if result.returncode != 0:
        raise CommandError(
            f"error running kubefirst help (exit {result.returncode})\nOutput: {result.stdout}{result.stderr}"
        )
    return parse_help_flags(result.stdout + "\n" + result.stderr)
