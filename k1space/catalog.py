"""Catalog store: per-provider regions and node types in clouds.yaml.

Kept separate from the index so that an expensive network refresh never
has to rewrite configuration records.
"""
import logging
from pathlib import Path
from typing import Callable, List, Optional, Union

import yaml
from pydantic import ValidationError as ModelValidationError

from .config import Config
from .errors import ParseError, ProviderAPIError
from .legacy import LEGACY_CLOUDS, legacy_clouds
from .models import CloudCatalogDocument, NodeTypeDescriptor
from .providers import ProviderClient, canonical_provider, get_client
from .schema import CATALOG_SCHEMA, check_document
from .utils import utc_now, write_yaml_atomic

logger = logging.getLogger("k1space.catalog")


class CatalogStore:
    """Owns clouds.yaml. Refreshes replace a provider's entry only on success."""

    def __init__(self, path: Optional[Union[str, Path]] = None,
                 client_factory: Callable[[str], ProviderClient] = get_client):
        self.path = Path(path) if path else Config.clouds_path()
        self.client_factory = client_factory
        self.document: Optional[CloudCatalogDocument] = None

    def load(self) -> CloudCatalogDocument:
        """Read clouds.yaml; an absent file yields an empty catalog.

        A ``clouds.hcl`` left by an earlier release is read instead when
        clouds.yaml does not exist yet. It becomes clouds.yaml on the next
        persist.
        """
        source = self.path
        if not self.path.exists():
            legacy = self.path.with_name(LEGACY_CLOUDS)
            if not legacy.exists():
                logger.debug("%s does not exist, starting with an empty catalog", self.path)
                self.document = CloudCatalogDocument()
                return self.document
            logger.info("Importing legacy clouds catalog %s", legacy)
            source, raw = legacy, legacy_clouds(legacy)
        else:
            try:
                with open(self.path, "r") as f:
                    raw = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ParseError(f"{self.path}: malformed YAML: {e}") from e
            except OSError as e:
                raise ParseError(f"{self.path}: cannot read clouds catalog: {e}") from e

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ParseError(f"{source}: expected a mapping at the document root")
        check_document(raw, CATALOG_SCHEMA, source)

        try:
            self.document = CloudCatalogDocument.model_validate(raw)
        except ModelValidationError as e:
            raise ParseError(f"{source}: {e}") from e
        return self.document

    def persist(self) -> None:
        doc = self._document()
        doc.last_updated = utc_now()
        write_yaml_atomic(doc.model_dump(), self.path)
        logger.debug("Persisted clouds catalog %s", self.path)

    def _document(self) -> CloudCatalogDocument:
        if self.document is None:
            self.load()
        return self.document

    def regions(self, provider: str) -> List[str]:
        return list(self._document().cloud_regions.get(canonical_provider(provider), []))

    def node_types(self, provider: str) -> List[NodeTypeDescriptor]:
        return list(self._document().cloud_node_types.get(canonical_provider(provider), []))

    def refresh_regions(self, provider: str) -> List[str]:
        """Replace the provider's regions with a fresh listing."""
        provider = canonical_provider(provider)
        regions = self._fetch(provider, "regions", lambda client: client.list_regions())
        self._document().cloud_regions[provider] = regions
        logger.info("Fetched %d %s regions", len(regions), provider)
        return regions

    def refresh_node_types(self, provider: str) -> List[NodeTypeDescriptor]:
        """Replace the provider's node types with a fresh listing."""
        provider = canonical_provider(provider)
        node_types = self._fetch(provider, "node types", lambda client: client.list_node_types())
        self._document().cloud_node_types[provider] = node_types
        logger.info("Fetched %d %s node types", len(node_types), provider)
        return node_types

    def _fetch(self, provider: str, what: str, call):
        try:
            return list(call(self.client_factory(provider)))
        except ProviderAPIError:
            logger.error("Error updating %s %s", provider, what)
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderAPIError(f"Unexpected {provider} {what} response: {e}") from e

    def record_region(self, provider: str, region: str) -> None:
        """Remember a region used by a configuration."""
        provider = canonical_provider(provider)
        regions = self._document().cloud_regions.setdefault(provider, [])
        if region and region not in regions:
            regions.append(region)
