"""Record store: the persisted index of configurations and default values.

The index lives at ``<K1SPACE_HOME>/index.yaml``. Every mutation rewrites the
whole document. There is no locking and no check for edits made by another
process between ``load()`` and ``persist()``; callers run one session at a
time.
"""
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

import yaml
from pydantic import ValidationError as ModelValidationError

from .config import Config
from .errors import NotFoundError, ParseError, ValidationError
from .generator import env_prefix
from .legacy import LEGACY_INDEX, legacy_index
from .models import (
    ARTIFACT_NAMES,
    ENV_FILE,
    ConfigurationKey,
    ConfigurationRecord,
    RegistryDocument,
    stringify,
)
from .schema import CURRENT_VERSION, REGISTRY_SCHEMA, check_document, pad_expected_flags
from .utils import read_env_file, utc_now, write_yaml_atomic
from .utils.normalize import normalize_paths

logger = logging.getLogger("k1space.registry")

KeyLike = Union[ConfigurationKey, str]


def _token(key: KeyLike) -> str:
    return key.token if isinstance(key, ConfigurationKey) else str(key)


def _recover_flags(key: ConfigurationKey, files: List[str]) -> Dict[str, str]:
    """Read flag values back from a record's generated environment file."""
    prefix = env_prefix(key) + "_"
    flags = {}
    for path in files:
        if Path(path).name != ENV_FILE or not Path(path).is_file():
            continue
        try:
            env = read_env_file(path)
        except OSError as e:
            logger.warning("Cannot read %s: %s", path, e)
            continue
        for name, value in env.items():
            if name.startswith(prefix) and len(name) > len(prefix):
                flags[name[len(prefix):].lower().replace("_", "-")] = value
            elif name == "KUBEFIRST_PATH":
                flags.setdefault("kubefirst-path", value)
    return flags


def migrate_v1(raw: dict) -> dict:
    """Upgrade a version 1 index to the nested-flags layout.

    Version 1 records list their artifact files and usually nothing else.
    Flags are recovered from the record's ``.local.cloud.env``, where each
    one was exported as ``<PREFIX>_<PROVIDER>_<REGION>_<FLAG>``. Flags a
    record already carries under such an environment name are renamed to
    the plain flag name (``cluster-name``) and take precedence.
    """
    migrated = dict(raw)
    configs = {}
    for token, record in (raw.get("configs") or {}).items():
        record = dict(record or {})
        files = list(record.get("files") or [])
        flags = dict(record.get("flags") or {})
        try:
            key = ConfigurationKey.parse(token)
        except ValidationError:
            key = None
        if key is not None:
            recovered = _recover_flags(key, normalize_paths(files))
            prefix = env_prefix(key) + "_"
            for name, value in flags.items():
                if name.startswith(prefix) and len(name) > len(prefix):
                    name = name[len(prefix):].lower().replace("_", "-")
                recovered[name] = value
            flags = recovered
        record["files"] = files
        record["flags"] = flags
        configs[token] = record
    migrated["configs"] = configs
    migrated["default_values"] = {k: stringify(v) for k, v in (raw.get("default_values") or {}).items()}
    migrated["version"] = CURRENT_VERSION
    logger.info("Migrated index from version 1 to version %d", CURRENT_VERSION)
    return migrated


MIGRATIONS = {1: migrate_v1}


class RecordStore:
    """Owns the index document and is the only writer of index.yaml."""

    def __init__(self, path: Optional[Union[str, Path]] = None, home: Optional[Union[str, Path]] = None):
        self.home = Path(home) if home else Config.home()
        self.path = Path(path) if path else self.home / "index.yaml"
        self.document: Optional[RegistryDocument] = None

    # -- persistence -----------------------------------------------------

    def load(self) -> RegistryDocument:
        """Read the index, creating an empty one when the file is absent.

        When only an ``index.hcl`` from an earlier release exists it is
        imported, migrated and written out as the new index. The HCL file is
        left in place.
        """
        if not self.path.exists():
            legacy = self.path.with_name(LEGACY_INDEX)
            if legacy.exists():
                logger.info("Importing legacy index %s", legacy)
                self.document = self._validate(legacy_index(legacy), legacy)
                self._write(self.document)
                return self.document
            logger.info("%s does not exist, creating a new one", self.path)
            self._write(RegistryDocument(version=CURRENT_VERSION, last_updated=utc_now()))

        try:
            with open(self.path, "r") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ParseError(f"{self.path}: malformed YAML: {e}") from e
        except OSError as e:
            raise ParseError(f"{self.path}: cannot read index: {e}") from e

        self.document = self._validate(raw, self.path)
        logger.debug("Loaded index %s with %d configs", self.path, len(self.document.configs))
        return self.document

    def _validate(self, raw, source: Path) -> RegistryDocument:
        if not isinstance(raw, dict):
            raise ParseError(f"{source}: expected a mapping at the document root")
        check_document(raw, REGISTRY_SCHEMA, source)

        version = raw["version"]
        if version > CURRENT_VERSION:
            raise ParseError(
                f"{source}: document version {version} is newer than supported version {CURRENT_VERSION}",
                remediation="Upgrade k1space to read this index.",
            )
        while version < CURRENT_VERSION:
            raw = MIGRATIONS[version](raw)
            version = raw["version"]

        try:
            return RegistryDocument.model_validate(raw)
        except ModelValidationError as e:
            raise ParseError(f"{source}: {e}") from e

    def persist(self) -> None:
        """Rewrite the whole index document."""
        doc = self._document()
        doc.version = CURRENT_VERSION
        doc.last_updated = utc_now()
        self._write(doc)
        logger.debug("Persisted index %s", self.path)

    def cleanup(self) -> RegistryDocument:
        """Load, normalize and rewrite the index in the current schema."""
        doc = self.load()
        self.persist()
        return doc

    def _write(self, doc: RegistryDocument) -> None:
        write_yaml_atomic(doc.model_dump(), self.path)

    def _document(self) -> RegistryDocument:
        if self.document is None:
            self.load()
        return self.document

    # -- queries ---------------------------------------------------------

    def artifact_paths(self, key: ConfigurationKey) -> List[str]:
        base = key.base_dir(self.home)
        return [(base / name).as_posix() for name in ARTIFACT_NAMES]

    def get(self, key: KeyLike) -> ConfigurationRecord:
        token = _token(key)
        try:
            return self._document().configs[token]
        except KeyError:
            raise NotFoundError(f"Configuration '{token}' not found") from None

    def __contains__(self, key: KeyLike) -> bool:
        return _token(key) in self._document().configs

    def __len__(self) -> int:
        return len(self._document().configs)

    def tokens(self) -> List[str]:
        return sorted(self._document().configs)

    def entries(self) -> Iterator[Tuple[str, Optional[ConfigurationKey], ConfigurationRecord]]:
        """Yield (token, parsed key or None, record) sorted by token."""
        configs = self._document().configs
        for token in sorted(configs):
            try:
                key = ConfigurationKey.parse(token)
            except ValidationError:
                logger.warning("Config '%s' has an invalid key format", token)
                key = None
            yield token, key, configs[token]

    def defaults(self) -> Dict[str, str]:
        return dict(self._document().default_values)

    # -- mutations -------------------------------------------------------

    def remember(self, name: str, value: str) -> None:
        """Record a default value in memory; written by the next persist."""
        if value:
            self._document().default_values[name] = stringify(value)

    def upsert(self, cloud_provider: str, region: str, static_prefix: str,
               flags_delta: Dict[str, str]) -> RegistryDocument:
        """Create or update the record for a configuration and persist.

        Non-empty values in ``flags_delta`` replace existing values. An
        empty value never replaces a non-empty one. Every non-empty value
        becomes the new global default for its flag name.
        """
        key = ConfigurationKey.build(cloud_provider, region, static_prefix)
        doc = self._document()

        existing = doc.configs.get(key.token)
        flags = dict(existing.flags) if existing else {}
        for name, value in flags_delta.items():
            value = stringify(value)
            if value == "" and flags.get(name):
                continue
            flags[name] = value
        flags = pad_expected_flags(flags)

        doc.configs[key.token] = ConfigurationRecord(files=self.artifact_paths(key), flags=flags)
        for name, value in flags_delta.items():
            value = stringify(value)
            if value:
                doc.default_values[name] = value

        logger.info("%s config %s", "Updated" if existing else "Added", key.token)
        self.persist()
        return doc

    def remove(self, key: KeyLike) -> None:
        """Drop a record from the index. Files on disk are left alone."""
        token = _token(key)
        doc = self._document()
        if token not in doc.configs:
            raise NotFoundError(f"Configuration '{token}' not found")
        removed = doc.configs.pop(token)
        try:
            self.persist()
        except BaseException:
            doc.configs[token] = removed
            raise
        logger.info("Removed config %s", token)
