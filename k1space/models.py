"""
Data models for k1space configuration records and cloud catalog data.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

from pydantic import BaseModel, Field, field_validator

from .errors import ValidationError
from .utils.normalize import normalize_paths

KEY_SEPARATOR = "_"

# Names of the generated artifacts, in the order records list them.
ENV_FILE = ".local.cloud.env"
INIT_SCRIPT = "00-init.sh"
PROVIDER_SCRIPT = "01-kubefirst-cloud.sh"
ARTIFACT_NAMES = (ENV_FILE, INIT_SCRIPT, PROVIDER_SCRIPT)


def stringify(value: Any) -> str:
    """Flag values are always stored as their textual form."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _escape_component(part: str) -> str:
    return part.replace("%", "%25").replace(KEY_SEPARATOR, "%5F")


@dataclass(frozen=True)
class ConfigurationKey:
    """Composite identifier of a configuration: provider, region and prefix."""
    cloud_provider: str
    region: str
    static_prefix: str

    def __post_init__(self):
        for name in ("cloud_provider", "region", "static_prefix"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"Configuration key component '{name}' must be a non-empty string")
            if "/" in value or "\\" in value or value in (".", ".."):
                raise ValidationError(f"Configuration key component '{name}' contains a path separator: {value!r}")

    @classmethod
    def build(cls, cloud_provider: str, region: str, static_prefix: str) -> "ConfigurationKey":
        """Build a key the way new configurations are keyed: provider and region lower-cased."""
        return cls(
            (cloud_provider or "").strip().lower(),
            (region or "").strip().lower(),
            (static_prefix or "").strip(),
        )

    @classmethod
    def parse(cls, token: str) -> "ConfigurationKey":
        """Parse a serialized key such as ``civo_lon1_K1``."""
        parts = token.split(KEY_SEPARATOR) if token else []
        if len(parts) != 3 or not all(parts):
            raise ValidationError(
                f"Invalid configuration key '{token}': expected <provider>{KEY_SEPARATOR}<region>{KEY_SEPARATOR}<prefix>"
            )
        return cls(*(unquote(p) for p in parts))

    @property
    def token(self) -> str:
        return KEY_SEPARATOR.join(
            _escape_component(p) for p in (self.cloud_provider, self.region, self.static_prefix)
        )

    def base_dir(self, home: Path) -> Path:
        """Directory holding the generated artifacts of this configuration."""
        return Path(home) / self.cloud_provider.lower() / self.region.lower() / self.static_prefix

    def __str__(self) -> str:
        return self.token


class ConfigurationRecord(BaseModel):
    """Generated artifact paths and flag values of one configuration."""
    files: List[str] = Field(default_factory=list)
    flags: Dict[str, str] = Field(default_factory=dict)

    @field_validator("files", mode="before")
    @classmethod
    def clean_files(cls, v):
        if v is None:
            return []
        return normalize_paths(str(f) for f in v)

    @field_validator("flags", mode="before")
    @classmethod
    def stringify_flags(cls, v):
        if v is None:
            return {}
        return {str(k): stringify(val) for k, val in dict(v).items()}

    def init_script(self) -> Optional[str]:
        """Locate the init script, by suffix first and position second."""
        for path in self.files:
            if path.endswith(INIT_SCRIPT):
                return path
        if len(self.files) >= 2:
            return self.files[1]
        return None


class RegistryDocument(BaseModel):
    """Root of the persisted index: every configuration plus global defaults."""
    version: int = 1
    last_updated: str = ""
    configs: Dict[str, ConfigurationRecord] = Field(default_factory=dict)
    default_values: Dict[str, str] = Field(default_factory=dict)

    @field_validator("configs", "default_values", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return {} if v is None else v

    @field_validator("default_values")
    @classmethod
    def stringify_defaults(cls, v):
        return {k: stringify(val) for k, val in v.items()}


class NodeTypeDescriptor(BaseModel):
    """A provider node type with its capacity."""
    name: str
    cpu_cores: int = 0
    ram_megabytes: int = 0
    disk_gigabytes: int = 0

    def label(self) -> str:
        return (
            f"{self.name} (CPU Cores: {self.cpu_cores}, RAM: {self.ram_megabytes} MB, "
            f"Disk: {self.disk_gigabytes} GB)"
        )


class CloudCatalogDocument(BaseModel):
    """Persisted per-provider regions and node types."""
    last_updated: str = ""
    cloud_regions: Dict[str, List[str]] = Field(default_factory=dict)
    cloud_node_types: Dict[str, List[NodeTypeDescriptor]] = Field(default_factory=dict)

    @field_validator("cloud_regions", "cloud_node_types", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return {} if v is None else v


@dataclass
class CloudConfig:
    """In-memory draft assembled by the configuration builder."""
    static_prefix: str = ""
    cloud_provider: str = ""
    region: str = ""
    selected_node_type: str = ""
    flags: Dict[str, str] = field(default_factory=dict)

    def key(self) -> ConfigurationKey:
        return ConfigurationKey.build(self.cloud_provider, self.region, self.static_prefix)
