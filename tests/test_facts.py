import pytest

from kubecompat.core.errors import FactFormatError, InputError
from kubecompat.core.quantity import parse_cpu_milli, parse_memory_bytes
from kubecompat.facts.model import FactModel, decode_list, encode_list, is_superset, missing_items


def test_encode_list_sorts_and_deduplicates():
    assert encode_list(["b", "a", "b", ""]) == "a;b"
    assert encode_list([]) == ""


def test_encode_list_rejects_delimiter():
    with pytest.raises(FactFormatError):
        encode_list(["ok", "not;ok"])


def test_decode_list_drops_empty_fragments():
    assert decode_list("b;;a;") == ["a", "b"]
    assert decode_list("") == []
    assert decode_list(None) == []


def test_superset_and_missing_items():
    assert is_superset("apps/v1;batch/v1;v1", "apps/v1;v1")
    assert not is_superset("apps/v1", "apps/v1;batch/v1beta1")
    assert missing_items("apps/v1", "apps/v1;batch/v1beta1;policy/v1") == ["batch/v1beta1", "policy/v1"]
    # Empty subset is always covered
    assert is_superset("", "")


def test_round_trip_through_flat_text():
    model = FactModel({
        "cluster.gitVersion": "v1.29.3",
        "apis.preferred": encode_list(["v1", "apps/v1", "batch/v1"]),
        "policy.podSecurity.defaultNS": "restricted,,",
        "addons.kubesystem": "coredns=registry.k8s.io/coredns:v1.11.1",
        "storage.default": "",
        "nodes.osImages": "Ubuntu\u2028LTS\x0bjammy\x85edge\x1c",
        "cluster.platform": "linux\x0c\u2029amd64",
    })
    again = FactModel.loads(model.dumps())
    assert dict(again) == dict(model)
    assert again["nodes.osImages"] == "Ubuntu LTS jammy edge "
    assert again.dumps() == model.dumps()


def test_dumps_is_sorted_key_value_lines():
    model = FactModel({"b.key": "2", "a.key": "1"})
    assert model.dumps() == "a.key=1\nb.key=2\n"
    assert list(model) == ["a.key", "b.key"]


def test_values_are_flattened_to_one_line():
    model = FactModel({"cluster.platform": "linux\namd64"})
    assert model["cluster.platform"] == "linux amd64"


def test_loads_splits_on_first_equals_and_skips_comments():
    model = FactModel.loads("\ufeff# snapshot\n\naddons.kubesystem=coredns=img:1\n")
    assert model["addons.kubesystem"] == "coredns=img:1"
    assert len(model) == 1


def test_loads_rejects_lines_without_separator():
    with pytest.raises(FactFormatError) as exc:
        FactModel.loads("cluster.gitVersion=v1.29\nthis line is broken\n")
    assert "Line 2" in str(exc.value)


@pytest.mark.parametrize("key", ["has space", "#ns.x", "a=b", "", "line\u2028break"])
def test_invalid_keys_are_rejected(key):
    with pytest.raises(FactFormatError):
        FactModel({key: "x"})


def test_with_fact_returns_new_model():
    model = FactModel({"a": "1"})
    updated = model.with_fact("b", "2")
    assert "b" not in model
    assert updated.get_list("b") == ["2"]


def test_write_and_read(tmp_path):
    path = tmp_path / "facts.env"
    FactModel({"crds.count": "3"}).write(str(path))
    assert FactModel.read(str(path))["crds.count"] == "3"


def test_read_missing_file_is_input_error(tmp_path):
    with pytest.raises(InputError):
        FactModel.read(str(tmp_path / "absent.env"))


@pytest.mark.parametrize("value,expected", [
    ("250m", 250),
    ("4", 4000),
    ("1.5", 1500),
    ("500000u", 500),
    ("", 0),
    ("garbage", 0),
])
def test_parse_cpu_milli(value, expected):
    assert parse_cpu_milli(value) == expected


@pytest.mark.parametrize("value,expected", [
    ("8Gi", 8 * 1024 ** 3),
    ("16Gi", 17179869184),
    ("512M", 512000000),
    ("1024", 1024),
    ("3917480Ki", 3917480 * 1024),
    (None, 0),
])
def test_parse_memory_bytes(value, expected):
    assert parse_memory_bytes(value) == expected
