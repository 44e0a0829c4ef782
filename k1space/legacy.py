"""Readers for the HCL documents written by earlier k1space releases.

Those releases kept ``index.hcl`` and ``clouds.hcl`` in the k1space home.
They are read once, converted to the current mappings and left on disk
untouched.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Union

import hcl2

from .errors import ParseError

logger = logging.getLogger("k1space.legacy")

LEGACY_INDEX = "index.hcl"
LEGACY_CLOUDS = "clouds.hcl"


def _unquote(value: str) -> str:
    # newer python-hcl2 releases keep the quotes around string literals
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return value


def _plain(value: Any) -> Any:
    if isinstance(value, dict):
        return {_unquote(str(k)): _plain(v) for k, v in value.items() if not str(k).startswith("__")}
    if isinstance(value, list):
        return [_plain(item) for item in value]
    if isinstance(value, str):
        return _unquote(value)
    return value


def _block(value: Any) -> Dict[str, Any]:
    """Merge the bodies of a block; hcl2 returns each block as a list of dicts."""
    if isinstance(value, dict):
        return value
    merged = {}
    for body in value or []:
        if isinstance(body, dict):
            merged.update(body)
    return merged


def read_hcl(path: Union[str, Path]) -> Dict[str, Any]:
    """Parse an HCL file into plain Python values."""
    path = Path(path)
    try:
        with open(path, "r") as f:
            content = f.read()
    except OSError as e:
        raise ParseError(f"{path}: cannot read legacy document: {e}") from e
    try:
        data = hcl2.loads(content)
    except Exception as e:
        raise ParseError(f"{path}: malformed HCL: {e}") from e
    return _plain(data)


def legacy_index(path: Union[str, Path]) -> dict:
    """Convert an ``index.hcl`` into a version 1 index mapping.

    Version 1 records carry the artifact file list and, in some releases,
    a ``flags`` map. Default values are a flat block of strings.
    """
    data = read_hcl(path)
    configs = {}
    for token, body in _block(data.get("configs")).items():
        body = _block(body)
        record = {"files": [str(f) for f in body.get("files") or []]}
        if body.get("flags"):
            record["flags"] = {k: str(v) for k, v in _block(body["flags"]).items()}
        configs[token] = record

    defaults = {k: str(v) for k, v in _block(data.get("default_values")).items()}
    version = data.get("version", 1)
    logger.info("Read %d configs from legacy index %s", len(configs), path)
    return {
        "version": int(version) if str(version).isdigit() else 1,
        "last_updated": str(data.get("last_updated") or ""),
        "configs": configs,
        "default_values": defaults,
    }


def legacy_clouds(path: Union[str, Path]) -> dict:
    """Convert a ``clouds.hcl`` into a catalog mapping."""
    data = read_hcl(path)
    regions = {
        provider: [str(region) for region in values or []]
        for provider, values in _block(data.get("cloud_regions")).items()
    }
    node_types = {}
    for provider, values in _block(data.get("cloud_node_types")).items():
        node_types[provider] = [
            {
                "name": str(item.get("name", "")),
                "cpu_cores": int(item.get("cpu_cores") or 0),
                "ram_megabytes": int(item.get("ram_megabytes") or 0),
                "disk_gigabytes": int(item.get("disk_gigabytes") or 0),
            }
            for item in values or [] if isinstance(item, dict)
        ]
    logger.info("Read legacy clouds catalog %s", path)
    return {
        "last_updated": str(data.get("last_updated") or ""),
        "cloud_regions": regions,
        "cloud_node_types": node_types,
    }
