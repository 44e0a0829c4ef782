import pytest
import yaml

from k1space.errors import NotFoundError, ParseError, ValidationError
from k1space.models import ConfigurationRecord, RegistryDocument
from k1space.registry import RecordStore
from k1space.schema import CURRENT_VERSION, EXPECTED_FLAGS
from k1space.utils.normalize import normalize_path


def write_index(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data))


def test_load_creates_missing_index(records):
    doc = records.load()
    assert records.path.exists()
    assert doc.version == CURRENT_VERSION
    assert doc.configs == {}
    assert doc.default_values == {}
    assert doc.last_updated


def test_load_accepts_empty_configs_mapping(records):
    write_index(records.path, {"version": 2, "last_updated": "2024-01-01T00:00:00Z",
                               "configs": {}, "default_values": {}})
    assert records.load().configs == {}


@pytest.mark.parametrize("count", [0, 1, 5])
def test_round_trip(home, count):
    store = RecordStore(home=home)
    store.load()
    for i in range(count):
        store.upsert("Civo", f"region{i}", "K1", {"cluster-name": f"demo-{i}", "retries": 3})
    store.persist()
    written = store.document

    reloaded = RecordStore(home=home).load()
    assert reloaded == written
    assert len(reloaded.configs) == count


def test_file_paths_normalized_on_every_load(records):
    write_index(records.path, {
        "version": 2,
        "configs": {
            "civo_lon1_K1": {
                "files": ['"/home/me/.ssot/k1space/civo/lon1/K1/.local.cloud.env"',
                          "C:\\Users\\me\\00-init.sh",
                          "\\\"/tmp/01-kubefirst-cloud.sh\\\""],
                "flags": {"cluster-name": "demo"},
            }
        },
    })
    files = records.load().configs["civo_lon1_K1"].files
    assert files == [
        "/home/me/.ssot/k1space/civo/lon1/K1/.local.cloud.env",
        "C:/Users/me/00-init.sh",
        "/tmp/01-kubefirst-cloud.sh",
    ]


@pytest.mark.parametrize("path", [
    "/home/me/a.env",
    '"/home/me/a.env"',
    "C:\\a\\b.sh",
    "'\\\"x/y\\\"'",
])
def test_normalize_path_is_idempotent(path):
    once = normalize_path(path)
    assert normalize_path(once) == once


def test_upsert_same_key_merges_flags(records):
    records.load()
    records.upsert("Civo", "lon1", "K1", {"cluster-name": "demo", "node-type": "g4s.kube.small"})
    records.upsert("Civo", "LON1", "K1", {"cluster-name": "demo2", "domain-name": "example.com"})

    assert list(records.document.configs) == ["civo_lon1_K1"]
    flags = records.get("civo_lon1_K1").flags
    assert flags["cluster-name"] == "demo2"
    assert flags["node-type"] == "g4s.kube.small"
    assert flags["domain-name"] == "example.com"


def test_upsert_empty_value_does_not_clobber(records):
    records.load()
    records.upsert("Civo", "lon1", "K1", {"cluster-name": "demo"})
    records.upsert("Civo", "lon1", "K1", {"cluster-name": "", "alerts-email": ""})

    flags = records.get("civo_lon1_K1").flags
    assert flags["cluster-name"] == "demo"
    assert flags["alerts-email"] == ""
    assert records.defaults()["cluster-name"] == "demo"
    assert "alerts-email" not in records.defaults()


def test_upsert_builds_canonical_paths_and_pads_flags(records, home):
    records.load()
    records.upsert("DigitalOcean", "NYC3", "Team", {"cluster-name": "demo"})
    record = records.get("digitalocean_nyc3_Team")
    base = (home / "digitalocean" / "nyc3" / "Team").as_posix()
    assert record.files == [
        f"{base}/.local.cloud.env",
        f"{base}/00-init.sh",
        f"{base}/01-kubefirst-cloud.sh",
    ]
    for flag in EXPECTED_FLAGS:
        assert flag in record.flags
    assert record.flags["git-provider"] == ""


def test_upsert_updates_defaults_last_write_wins(records):
    records.load()
    records.upsert("Civo", "lon1", "K1", {"cloud-region": "lon1", "node-type": "small"})
    records.upsert("DigitalOcean", "nyc3", "K1", {"cloud-region": "nyc3"})
    assert records.defaults()["cloud-region"] == "nyc3"
    assert records.defaults()["node-type"] == "small"


def test_upsert_is_persisted(records, home):
    records.load()
    records.upsert("Civo", "lon1", "K1", {"cluster-name": "demo"})
    reloaded = RecordStore(home=home).load()
    assert reloaded.configs["civo_lon1_K1"].flags["cluster-name"] == "demo"


def test_upsert_rejects_incomplete_key(records):
    records.load()
    with pytest.raises(ValidationError):
        records.upsert("Civo", "", "K1", {})
    assert records.document.configs == {}


def test_remove_unknown_key_leaves_index_unchanged(records):
    records.load()
    records.upsert("Civo", "lon1", "K1", {"cluster-name": "demo"})
    before = records.path.read_bytes()

    with pytest.raises(NotFoundError):
        records.remove("civo_nyc1_K1")

    assert records.path.read_bytes() == before
    assert "civo_lon1_K1" in records


def test_remove_persists(records, home):
    records.load()
    records.upsert("Civo", "lon1", "K1", {"cluster-name": "demo"})
    records.remove("civo_lon1_K1")
    assert RecordStore(home=home).load().configs == {}


def test_malformed_yaml_raises_parse_error(records):
    records.path.parent.mkdir(parents=True)
    records.path.write_text("version: 2\nconfigs: [unclosed\n")
    with pytest.raises(ParseError):
        records.load()
    assert records.path.read_text() == "version: 2\nconfigs: [unclosed\n"


def test_schema_violation_raises_parse_error(records):
    write_index(records.path, {"version": 2, "configs": ["civo_lon1_K1"]})
    with pytest.raises(ParseError) as exc:
        records.load()
    assert "configs" in str(exc.value)


def test_newer_version_is_rejected(records):
    write_index(records.path, {"version": CURRENT_VERSION + 1, "configs": {}})
    with pytest.raises(ParseError):
        records.load()


LEGACY_ENV = (
    'export K1_CIVO_LON1_CLUSTER_NAME="demo"\n'
    'export K1_CIVO_LON1_NODE_TYPE="g4s.kube.small"\n'
    'export KUBEFIRST_PATH="/usr/local/bin/kubefirst"\n'
)


def write_legacy_config(home):
    base = home / "civo" / "lon1" / "K1"
    base.mkdir(parents=True)
    (base / ".local.cloud.env").write_text(LEGACY_ENV)
    return [(base / name).as_posix() for name in (".local.cloud.env", "00-init.sh", "01-kubefirst-cloud.sh")]


def legacy_hcl(files):
    listed = ", ".join(f'"{f}"' for f in files)
    return f"""version      = 1
last_updated = "2024-01-01T00:00:00Z"

configs {{
  civo_lon1_K1 {{
    files = [{listed}]
  }}
  do_nyc3_K1 {{
    files = ["/missing/do/nyc3/K1/.local.cloud.env"]
  }}
}}

default_values {{
  cluster-name = "demo"
  static-prefix = "K1"
}}
"""


def test_legacy_hcl_index_is_imported(records, home):
    files = write_legacy_config(home)
    (home / "index.hcl").write_text(legacy_hcl(files))

    doc = records.load()

    assert doc.version == CURRENT_VERSION
    assert doc.configs["civo_lon1_K1"].files == files
    assert doc.configs["civo_lon1_K1"].flags == {
        "cluster-name": "demo",
        "node-type": "g4s.kube.small",
        "kubefirst-path": "/usr/local/bin/kubefirst",
    }
    assert doc.configs["do_nyc3_K1"].flags == {}
    assert doc.default_values == {"cluster-name": "demo", "static-prefix": "K1"}

    raw = yaml.safe_load(records.path.read_text())
    assert raw["version"] == CURRENT_VERSION
    assert raw["configs"]["civo_lon1_K1"]["flags"]["cluster-name"] == "demo"
    assert (home / "index.hcl").exists()
    assert RecordStore(home=home).load().configs.keys() == doc.configs.keys()


def test_existing_index_yaml_wins_over_legacy_hcl(records, home):
    write_index(records.path, {"version": 2, "configs": {}, "default_values": {"cluster-name": "new"}})
    (home / "index.hcl").write_text(legacy_hcl(write_legacy_config(home)))
    doc = records.load()
    assert doc.configs == {}
    assert doc.default_values == {"cluster-name": "new"}


def test_malformed_legacy_index_raises_parse_error(records, home):
    home.mkdir(parents=True)
    (home / "index.hcl").write_text("configs {\n  civo_lon1_K1 {\n")
    with pytest.raises(ParseError) as exc:
        records.load()
    assert "index.hcl" in str(exc.value)
    assert not records.path.exists()


def test_version_one_index_is_migrated(records, home):
    files = write_legacy_config(home)
    write_index(records.path, {
        "version": 1,
        "last_updated": "2024-01-01T00:00:00Z",
        "configs": {
            "civo_lon1_K1": {
                "files": files,
                "flags": {"K1_CIVO_LON1_CLUSTER_NAME": "override", "domain-name": "example.com"},
            },
            "do_nyc3_K1": {"files": ["/y/00-init.sh"]},
        },
        "default_values": {"cluster-name": "demo"},
    })
    doc = records.load()
    assert doc.version == CURRENT_VERSION
    assert doc.configs["civo_lon1_K1"].flags == {
        "cluster-name": "override",
        "node-type": "g4s.kube.small",
        "kubefirst-path": "/usr/local/bin/kubefirst",
        "domain-name": "example.com",
    }
    assert doc.configs["do_nyc3_K1"].flags == {}

    records.persist()
    assert yaml.safe_load(records.path.read_text())["version"] == CURRENT_VERSION


def test_cleanup_rewrites_in_current_schema(records):
    write_index(records.path, {"version": 1, "configs": {"civo_lon1_K1": {"files": ['"/a/00-init.sh"']}}})
    records.cleanup()
    raw = yaml.safe_load(records.path.read_text())
    assert raw["version"] == CURRENT_VERSION
    assert raw["configs"]["civo_lon1_K1"]["files"] == ["/a/00-init.sh"]
    assert raw["configs"]["civo_lon1_K1"]["flags"] == {}


def test_entries_flags_invalid_keys(records):
    write_index(records.path, {"version": 2, "configs": {
        "civo_lon1_K1": {"files": []},
        "broken": {"files": []},
    }})
    entries = {token: key for token, key, _ in records.entries()}
    assert entries["broken"] is None
    assert entries["civo_lon1_K1"].region == "lon1"


def test_record_defaults_to_empty_collections():
    record = ConfigurationRecord.model_validate({"files": None, "flags": None})
    assert record.files == []
    assert record.flags == {}
    assert RegistryDocument(version=2).configs == {}
