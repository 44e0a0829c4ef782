# k1space/utils/normalize.py
import re
from typing import Iterable, List

_STRAY_CHARS = "\"'\\"
_NON_ALNUM = re.compile(r"[^0-9A-Za-z]")


def normalize_path(path: str) -> str:
    """Strip stray quoting characters and use forward slashes.

    Applying it to an already normalized path returns the path unchanged.
    """
    previous = None
    cleaned = path
    while cleaned != previous:
        previous = cleaned
        cleaned = cleaned.strip().strip(_STRAY_CHARS).replace("\\", "/")
    return cleaned


def normalize_paths(paths: Iterable[str]) -> List[str]:
    return [normalize_path(p) for p in paths]


def env_segment(value: str, upper: bool = True) -> str:
    """Turn an arbitrary string into a shell identifier segment."""
    segment = _NON_ALNUM.sub("_", value)
    return segment.upper() if upper else segment


def shell_quote(value: str) -> str:
    """Escape a value for use inside a double-quoted shell string."""
    for char in ("\\", "\"", "$", "`"):
        value = value.replace(char, "\\" + char)
    return value


def shell_unquote(value: str) -> str:
    """Reverse shell_quote for a value read back from an env file."""
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == "\"":
        value = value[1:-1]
    return re.sub(r"\\([\\\"$`])", r"\1", value)
