import pytest
import typer
import yaml

from k1space.builder import BuilderState, ConfigurationBuilder, resolve_flags
from k1space.errors import CommandError, ProviderAPIError
from k1space.registry import RecordStore

KUBEFIRST = "/opt/kubefirst/kubefirst"

CIVO_FLAGS = {
    "cloud-region": "the Civo region to provision infrastructure in",
    "node-type": "the instance size of the cluster to create",
    "cluster-name": "the name of the cluster to create",
    "domain-name": "the Civo DNS Name to use for DNS records",
}

SCENARIO = {
    "Enter static prefix": "K1",
    "Select cloud provider": "Civo",
    "Select cloud region": "lon1",
    "Select node type": "g4s.kube.small",
    "Enter value for cluster-name": "demo",
}


def flags_of(declared):
    calls = []

    def source(binary, provider):
        calls.append((binary, provider))
        return dict(declared)

    source.calls = calls
    return source


def make_builder(records, catalog, prompter, flag_source=None, echo=None):
    return ConfigurationBuilder(
        records, catalog,
        prompter=prompter,
        flag_source=flag_source or flags_of(CIVO_FLAGS),
        kubefirst_path=KUBEFIRST,
        echo=echo or (lambda line: None),
    )


def test_create_civo_configuration(monkeypatch, home, records, catalog, prompter):
    monkeypatch.setenv("CIVO_TOKEN", "token")
    result = make_builder(records, catalog, prompter(SCENARIO)).run()

    assert result.completed
    base = home / "civo" / "lon1" / "K1"
    env = (base / ".local.cloud.env").read_text()
    assert 'export K1_CIVO_LON1_CLUSTER_NAME="demo"' in env
    assert 'export K1_CIVO_LON1_NODE_TYPE="g4s.kube.small"' in env
    assert f'export KUBEFIRST_PATH="{KUBEFIRST}"' in env
    assert (base / "00-init.sh").exists()
    assert "--node-type" in (base / "01-kubefirst-cloud.sh").read_text()

    stored = RecordStore(home=home).load()
    record = stored.configs["civo_lon1_K1"]
    assert record.files[0].endswith("/civo/lon1/K1/.local.cloud.env")
    assert record.flags["cloud-region"] == "lon1"
    assert record.flags["domain-name"] == ""
    assert record.flags["kubefirst-path"] == KUBEFIRST
    assert stored.default_values["static-prefix"] == "K1"

    clouds = yaml.safe_load((home / "clouds.yaml").read_text())
    assert "lon1" in clouds["cloud_regions"]["Civo"]
    assert clouds["cloud_node_types"]["Civo"][0]["name"] == "g4s.kube.small"


def test_defaults_are_offered_for_unanswered_prompts(monkeypatch, home, records, catalog, prompter):
    monkeypatch.setenv("CIVO_TOKEN", "token")
    records.load()
    records.document.default_values.update({"cloud-region": "lon1", "cluster-name": "previous"})
    records.persist()

    answers = {"Select cloud provider": "Civo"}
    result = make_builder(records, catalog, prompter(answers)).run()

    assert result.completed
    assert result.draft.region == "lon1"
    assert result.draft.static_prefix == "K1"
    env = (home / "civo" / "lon1" / "K1" / ".local.cloud.env").read_text()
    assert 'export K1_CIVO_LON1_CLOUD_REGION="lon1"' in env
    assert 'export K1_CIVO_LON1_CLUSTER_NAME="previous"' in env


def test_previous_prefix_is_the_default(monkeypatch, home, records, catalog, prompter):
    monkeypatch.setenv("CIVO_TOKEN", "token")
    make_builder(records, catalog, prompter(dict(SCENARIO, **{"Enter static prefix": "Team"}))).run()
    result = make_builder(records, catalog, prompter({"Select cloud provider": "Civo"})).run()
    assert result.draft.static_prefix == "Team"


def test_missing_token_aborts_without_writes(monkeypatch, home, records, catalog, prompter):
    monkeypatch.delenv("CIVO_TOKEN", raising=False)
    echoed = []
    source = flags_of(CIVO_FLAGS)
    result = make_builder(records, catalog, prompter(SCENARIO), flag_source=source, echo=echoed.append).run()

    assert result.state == BuilderState.ABORTED
    assert "export CIVO_TOKEN=your_token_here" in echoed[0]
    assert source.calls == []
    assert not (home / "civo").exists()
    assert RecordStore(home=home).load().configs == {}


def test_provider_error_leaves_no_partial_writes(monkeypatch, home, records, failing_catalog, prompter):
    monkeypatch.setenv("CIVO_TOKEN", "token")
    with pytest.raises(ProviderAPIError):
        make_builder(records, failing_catalog, prompter(SCENARIO)).run()

    assert not (home / "civo").exists()
    assert not (home / "clouds.yaml").exists()
    assert RecordStore(home=home).load().configs == {}


def test_cancel_aborts_session(monkeypatch, home, records, catalog, prompter):
    monkeypatch.setenv("CIVO_TOKEN", "token")
    answers = dict(SCENARIO, **{"Enter value for cluster-name": typer.Abort})
    result = make_builder(records, catalog, prompter(answers)).run()

    assert result.state == BuilderState.ABORTED
    assert not result.completed
    assert not (home / "civo").exists()
    assert RecordStore(home=home).load().configs == {}


def test_no_declared_flags_is_an_error(monkeypatch, records, catalog, prompter):
    monkeypatch.setenv("CIVO_TOKEN", "token")
    with pytest.raises(CommandError):
        make_builder(records, catalog, prompter(SCENARIO), flag_source=flags_of({})).run()


def test_k3d_skips_catalog_and_defaults_region(home, records, failing_catalog, prompter):
    answers = {"Select cloud provider": "K3d", "Enter value for cluster-name": "dev"}
    result = make_builder(records, failing_catalog, prompter(answers),
                          flag_source=flags_of({"cluster-name": "the name of the cluster"})).run()

    assert result.completed
    assert result.draft.region == "local"
    env = (home / "k3d" / "local" / "K1" / ".local.cloud.env").read_text()
    assert 'export K1_K3D_LOCAL_CLUSTER_NAME="dev"' in env
    assert "k3d_local_K1" in RecordStore(home=home).load().configs


def test_k3d_region_stays_free_text_after_first_config(home, records, failing_catalog, prompter):
    flags = flags_of({"cluster-name": "the name of the cluster"})
    first = prompter({"Select cloud provider": "K3d", "Enter value for cluster-name": "dev"})
    make_builder(records, failing_catalog, first, flag_source=flags).run()
    assert failing_catalog.regions("K3d") == ["local"]

    answers = {"Select cloud provider": "K3d", "Enter cloud region": "edge", "Enter value for cluster-name": "edge"}
    second = prompter(answers)
    result = make_builder(records, failing_catalog, second, flag_source=flags).run()

    assert "Enter cloud region" in second.asked
    assert "Select cloud region" not in second.asked
    assert result.draft.region == "edge"
    assert "k3d_edge_K1" in RecordStore(home=home).load().configs
    assert failing_catalog.regions("K3d") == ["local", "edge"]


def test_template_values_become_suggestions(monkeypatch, home, records, catalog, prompter):
    monkeypatch.setenv("CIVO_TOKEN", "token")
    make_builder(records, catalog, prompter(dict(SCENARIO, **{"Enter value for domain-name": "example.com"}))).run()
    records.load()
    records.document.default_values.pop("domain-name")
    records.persist()

    answers = dict(SCENARIO, **{"Enter static prefix": "K2"})
    answers.pop("Enter value for cluster-name")
    fake = prompter(answers, confirms={"Do you want to use values from a previous config?": True})
    result = make_builder(records, catalog, fake).run()

    assert "Select a previous config to use as a template" in fake.asked
    assert result.draft.flags["domain-name"] == "example.com"


def test_resolve_flags():
    resolved = resolve_flags(
        ["cluster-name", "domain-name", "alerts-email"],
        {"cluster-name": "  demo ", "domain-name": ""},
        {"domain-name": "example.com"},
    )
    assert resolved == {"cluster-name": "demo", "domain-name": "example.com", "alerts-email": ""}
