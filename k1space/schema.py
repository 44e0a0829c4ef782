"""Declared on-disk schemas for the index and clouds documents."""
from typing import Dict

from jsonschema import validate, ValidationError as SchemaValidationError

from .errors import ParseError

# Schema version written by this release. Version 1 documents carry
# records without a nested flags mapping and are migrated on load.
CURRENT_VERSION = 2

_SCALAR = {"type": ["string", "number", "boolean", "null"]}

# Baseline flags every record carries, padded with their default when a
# configuration run did not provide them.
EXPECTED_FLAGS_SCHEMA = {
    "type": "object",
    "properties": {
        "cloud-region": {"type": "string", "default": ""},
        "node-type": {"type": "string", "default": ""},
        "cluster-name": {"type": "string", "default": ""},
        "domain-name": {"type": "string", "default": ""},
        "git-provider": {"type": "string", "default": ""},
        "kubefirst-path": {"type": "string", "default": ""},
    },
    "required": [
        "cloud-region",
        "node-type",
        "cluster-name",
        "domain-name",
        "git-provider",
        "kubefirst-path",
    ],
    "additionalProperties": {"type": "string"},
}

EXPECTED_FLAGS = tuple(EXPECTED_FLAGS_SCHEMA["required"])

RECORD_SCHEMA = {
    "type": "object",
    "properties": {
        "files": {"type": ["array", "null"], "items": {"type": "string"}},
        "flags": {"type": ["object", "null"], "additionalProperties": _SCALAR},
    },
    "additionalProperties": False,
}

REGISTRY_SCHEMA = {
    "type": "object",
    "properties": {
        "version": {"type": "integer", "minimum": 1},
        "last_updated": {"type": ["string", "null"]},
        "configs": {"type": ["object", "null"], "additionalProperties": RECORD_SCHEMA},
        "default_values": {"type": ["object", "null"], "additionalProperties": _SCALAR},
    },
    "required": ["version"],
}

NODE_TYPE_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "cpu_cores": {"type": "integer"},
        "ram_megabytes": {"type": "integer"},
        "disk_gigabytes": {"type": "integer"},
    },
    "required": ["name"],
}

CATALOG_SCHEMA = {
    "type": "object",
    "properties": {
        "last_updated": {"type": ["string", "null"]},
        "cloud_regions": {
            "type": ["object", "null"],
            "additionalProperties": {"type": "array", "items": {"type": "string"}},
        },
        "cloud_node_types": {
            "type": ["object", "null"],
            "additionalProperties": {"type": "array", "items": NODE_TYPE_SCHEMA},
        },
    },
}


def check_document(data, schema: dict, source) -> None:
    """Validate a loaded document, raising ParseError with the location."""
    try:
        validate(instance=data, schema=schema)
    except SchemaValidationError as ve:
        location = "/".join(str(p) for p in ve.absolute_path) or "<root>"
        raise ParseError(f"{source}: invalid document at {location}: {ve.message}") from ve


def pad_expected_flags(flags: Dict[str, str]) -> Dict[str, str]:
    """Return a copy of flags with every expected flag present."""
    padded = dict(flags)
    for name in EXPECTED_FLAGS_SCHEMA["required"]:
        padded.setdefault(name, EXPECTED_FLAGS_SCHEMA["properties"][name].get("default", ""))
    validate(instance=padded, schema=EXPECTED_FLAGS_SCHEMA)
    return padded
