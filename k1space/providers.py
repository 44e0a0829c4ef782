"""Cloud provider clients used to refresh the clouds catalog."""
import logging
import os
from typing import Dict, List, Optional, Tuple

import requests

from .config import Config
from .errors import ProviderAPIError, ValidationError
from .logging import redact
from .models import NodeTypeDescriptor

logger = logging.getLogger("k1space.providers")

# Providers offered by the configuration builder.
CLOUD_PROVIDERS = ("Civo", "DigitalOcean", "K3d")

# Provider -> (token environment variable, where to create one)
PROVIDER_CREDENTIALS: Dict[str, Tuple[str, str]] = {
    "Civo": (
        "CIVO_TOKEN",
        "You can create a new Civo API token at https://www.civo.com/account/security",
    ),
    "DigitalOcean": (
        "DO_TOKEN",
        "You can create a new DigitalOcean API token at https://cloud.digitalocean.com/account/api/tokens",
    ),
}


def canonical_provider(name: str) -> str:
    """Map any casing of a provider name onto its canonical spelling."""
    for provider in CLOUD_PROVIDERS:
        if provider.lower() == (name or "").strip().lower():
            return provider
    raise ValidationError(
        f"Unknown cloud provider '{name}'",
        remediation=f"Choose one of: {', '.join(CLOUD_PROVIDERS)}",
    )


def has_required_credential(provider: str) -> bool:
    """True when the provider needs no token or its token is exported."""
    credential = PROVIDER_CREDENTIALS.get(canonical_provider(provider))
    if credential is None:
        return True
    return bool(os.getenv(credential[0]))


def missing_credential_message(provider: str) -> str:
    token_name, instructions = PROVIDER_CREDENTIALS[canonical_provider(provider)]
    return f"""
╔════════════════════════════════════════════════════════════════════════════╗
║ Missing Required Token: {token_name}
║────────────────────────────────────────────────────────────────────────────
║ The {token_name} environment variable is not set.
║
║ To set it, run the following command in your terminal:
║ export {token_name}=your_token_here
║
║ {instructions}
║
║ After setting the token, please restart k1space.
╚════════════════════════════════════════════════════════════════════════════╝
"""


def requires_catalog(provider: str) -> bool:
    """Whether regions and node types must be fetched live for the provider."""
    return canonical_provider(provider) in PROVIDER_CREDENTIALS


def _to_int(text: str, suffixes: Tuple[str, ...]) -> Optional[Tuple[int, str]]:
    text = text.lower()
    for suffix in suffixes:
        if text.endswith(suffix):
            number = text[: -len(suffix)]
            if number.isdigit():
                return int(number), suffix
    return None


def parse_digitalocean_size(slug: str) -> Tuple[int, int, int]:
    """Derive (cpu cores, RAM MB, disk GB) from a DigitalOcean size slug.

    Slugs look like ``s-2vcpu-4gb`` or ``c-4vcpu-8gb-intel-240gb``. Fields
    that do not parse are returned as zero.
    """
    parts = slug.split("-")
    if len(parts) < 3:
        return 0, 0, 0

    cpu = _to_int(parts[1], ("vcpu",))
    cpu_cores = cpu[0] if cpu else 0

    ram = _to_int(parts[2], ("gb", "mb"))
    if ram is None:
        ram_mb = 0
    elif ram[1] == "gb":
        ram_mb = ram[0] * 1024
    else:
        ram_mb = ram[0]

    disk_gb = 0
    for part in parts[3:]:
        disk = _to_int(part, ("gb",))
        if disk:
            disk_gb = disk[0]
            break

    return cpu_cores, ram_mb, disk_gb


class ProviderClient:
    """Base class for token-authenticated JSON APIs."""
    provider = ""
    base_url = ""

    def __init__(self, token: str = None, session: requests.Session = None, timeout: float = None):
        token_name = PROVIDER_CREDENTIALS[self.provider][0]
        self.token = token or os.getenv(token_name, "")
        if not self.token:
            raise ProviderAPIError(
                f"{token_name} not found in environment. Please set it and try again",
                remediation=f"export {token_name}=your_token_here",
            )
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else Config.API_TIMEOUT

    def _get(self, url: str, params: dict = None):
        headers = {"Authorization": f"Bearer {self.token}", "Accept": "application/json"}
        logger.debug("GET %s params=%s headers=%s", url, params, redact(headers))
        try:
            response = self.session.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.Timeout as e:
            raise ProviderAPIError(f"{self.provider} API timed out after {self.timeout}s: {url}") from e
        except requests.RequestException as e:
            raise ProviderAPIError(f"{self.provider} API request failed: {e}") from e
        except ValueError as e:
            raise ProviderAPIError(f"{self.provider} API returned invalid JSON: {url}") from e

    def list_regions(self) -> List[str]:
        raise NotImplementedError

    def list_node_types(self) -> List[NodeTypeDescriptor]:
        raise NotImplementedError


class CivoClient(ProviderClient):
    provider = "Civo"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.base_url = Config.CIVO_API_URL.rstrip("/")

    def list_regions(self) -> List[str]:
        regions = self._get(f"{self.base_url}/regions")
        return [r["code"] for r in regions if r.get("code")]

    def list_node_types(self) -> List[NodeTypeDescriptor]:
        sizes = self._get(f"{self.base_url}/sizes")
        descriptors = []
        for size in sizes:
            if not size.get("name"):
                continue
            descriptors.append(NodeTypeDescriptor(
                name=size["name"],
                cpu_cores=int(size.get("cpu_cores") or 0),
                ram_megabytes=int(size.get("ram_mb") or 0),
                disk_gigabytes=int(size.get("disk_gb") or 0),
            ))
        return descriptors


class DigitalOceanClient(ProviderClient):
    provider = "DigitalOcean"
    per_page = 200

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.base_url = Config.DIGITALOCEAN_API_URL.rstrip("/")

    def _paginate(self, resource: str) -> List[dict]:
        items = []
        url = f"{self.base_url}/{resource}"
        params = {"page": 1, "per_page": self.per_page}
        while url:
            payload = self._get(url, params=params)
            items.extend(payload.get(resource, []))
            url = ((payload.get("links") or {}).get("pages") or {}).get("next")
            # The next link already carries its own query string
            params = None
        return items

    def list_regions(self) -> List[str]:
        return [r["slug"] for r in self._paginate("regions") if r.get("slug")]

    def list_node_types(self) -> List[NodeTypeDescriptor]:
        descriptors = []
        for size in self._paginate("sizes"):
            slug = size.get("slug")
            if not slug:
                continue
            cpu_cores, ram_mb, disk_gb = parse_digitalocean_size(slug)
            descriptors.append(NodeTypeDescriptor(
                name=slug,
                cpu_cores=cpu_cores,
                ram_megabytes=ram_mb,
                disk_gigabytes=disk_gb,
            ))
        return descriptors


CLIENTS = {
    "Civo": CivoClient,
    "DigitalOcean": DigitalOceanClient,
}


def get_client(provider: str, **kwargs) -> ProviderClient:
    provider = canonical_provider(provider)
    if provider not in CLIENTS:
        raise ProviderAPIError(f"{provider} has no cloud API to query")
    return CLIENTS[provider](**kwargs)
