import pytest
import typer

from k1space.catalog import CatalogStore
from k1space.errors import ProviderAPIError
from k1space.models import NodeTypeDescriptor
from k1space.registry import RecordStore


class FakePrompter:
    """Scripted answers keyed by prompt title; unscripted prompts take the default."""

    def __init__(self, answers=None, confirms=None):
        self.answers = dict(answers or {})
        self.confirms = dict(confirms or {})
        self.asked = []

    def _scripted(self, title):
        value = self.answers[title]
        if value is typer.Abort:
            raise typer.Abort()
        return value

    def select(self, title, options, default=None):
        self.asked.append(title)
        values = [o[1] if isinstance(o, tuple) else o for o in options]
        if title in self.answers:
            value = self._scripted(title)
            assert value in values, f"{value!r} not offered for {title!r}: {values}"
            return value
        if default is not None:
            return default
        return values[0]

    def text(self, title, default=None, description=""):
        self.asked.append(title)
        if title in self.answers:
            return self._scripted(title)
        return default or ""

    def confirm(self, title, default=False):
        self.asked.append(title)
        return self.confirms.get(title, default)


class FakeClient:
    def __init__(self, regions=None, node_types=None, error=None):
        self.regions = regions or []
        self.node_types = node_types or []
        self.error = error

    def list_regions(self):
        if self.error:
            raise self.error
        return list(self.regions)

    def list_node_types(self):
        if self.error:
            raise self.error
        return list(self.node_types)


CIVO_NODE_TYPES = [
    NodeTypeDescriptor(name="g4s.kube.small", cpu_cores=1, ram_megabytes=2048, disk_gigabytes=40),
    NodeTypeDescriptor(name="g4s.kube.medium", cpu_cores=2, ram_megabytes=4096, disk_gigabytes=50),
]


@pytest.fixture
def home(tmp_path, monkeypatch):
    home = tmp_path / "k1space"
    monkeypatch.setenv("K1SPACE_HOME", str(home))
    return home


@pytest.fixture
def records(home):
    return RecordStore(home=home)


@pytest.fixture
def civo_node_types():
    return list(CIVO_NODE_TYPES)


@pytest.fixture
def fake_client():
    return FakeClient


@pytest.fixture
def civo_client():
    return FakeClient(regions=["lon1", "nyc1", "fra1"], node_types=CIVO_NODE_TYPES)


@pytest.fixture
def catalog(home, civo_client):
    return CatalogStore(path=home / "clouds.yaml", client_factory=lambda provider: civo_client)


@pytest.fixture
def failing_catalog(home):
    client = FakeClient(error=ProviderAPIError("Civo API timed out after 30s"))
    return CatalogStore(path=home / "clouds.yaml", client_factory=lambda provider: client)


@pytest.fixture
def prompter():
    return FakePrompter
