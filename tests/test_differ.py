import pytest

from kubecompat.core.config import AssessmentConfig
from kubecompat.core.models import Assessment
from kubecompat.facts.differ import FactDiffer, summary_key
from kubecompat.facts.model import FactModel

GI = 1024 ** 3


def snapshot(**overrides):
    facts = {
        "apis.preferred": "apps/v1;batch/v1;networking.k8s.io/v1;v1",
        "apis.resource.cronjobs.batch": "present",
        "capacity.cpu_milli": "4000",
        "capacity.mem_bytes": str(8 * GI),
        "storage.default": "gp2",
        "network.cni.guess": "calico-node",
        "ingress.controllers": "k8s.io/ingress-nginx",
        "addons.kubesystem": "coredns=coredns:1.10;kube-proxy=kube-proxy:1.28",
        "policy.podSecurity.defaultNS": "restricted,,",
        "admission.validatingwebhooks.count": "2",
    }
    facts.update({k.replace("__", "."): v for k, v in overrides.items()})
    return FactModel(facts)


def summaries(rows):
    return {r.key: r for r in rows if r.key.startswith("__SUMMARY.")}


def test_identical_snapshots_pass_every_assessment():
    rows = FactDiffer().compare(snapshot(), snapshot())
    summary = summaries(rows)
    assert len(summary) == 6
    assert all(r.assessment == Assessment.OK for r in summary.values())
    assert all(r.assessment == Assessment.SAME for r in rows if r.key not in summary)


def test_summary_rows_come_first():
    rows = FactDiffer().compare(snapshot(), snapshot())
    assert [r.key for r in rows[:6]] == [
        summary_key(n) for n in ("API_SURFACE", "CAPACITY", "STORAGE", "NETWORK_STACK", "ADDONS", "POLICY")
    ]


def test_capacity_regression_names_dimension():
    source = snapshot()
    target = snapshot(capacity__cpu_milli="2000", capacity__mem_bytes=str(16 * GI))
    row = summaries(FactDiffer().compare(source, target))[summary_key("CAPACITY")]
    assert row.assessment == Assessment.FAIL
    assert "CPU target<source (2000<4000)" in row.notes
    assert "MEM" not in row.notes


def test_non_numeric_capacity_is_advisory():
    row = summaries(FactDiffer().compare(snapshot(), snapshot(capacity__cpu_milli="n/a")))[summary_key("CAPACITY")]
    assert row.assessment == Assessment.FAIL
    assert "not numeric" in row.notes


def test_api_surface_lacks_group_versions_and_must_haves():
    target = snapshot(apis__preferred="apps/v1;v1", apis__resource__cronjobs__batch="missing")
    row = summaries(FactDiffer().compare(snapshot(), target))[summary_key("API_SURFACE")]
    assert row.assessment == Assessment.FAIL
    assert "batch/v1" in row.notes
    assert "target missing cronjobs.batch" in row.notes


def test_must_have_list_is_configurable():
    config = AssessmentConfig(must_have_resources=["deployments.apps"])
    target = snapshot(apis__resource__cronjobs__batch="missing")
    row = summaries(FactDiffer(config).compare(snapshot(), target))[summary_key("API_SURFACE")]
    assert row.assessment == Assessment.OK


def test_missing_default_storage_class_warns():
    row = summaries(FactDiffer().compare(snapshot(), snapshot(storage__default="")))[summary_key("STORAGE")]
    assert row.assessment == Assessment.WARN


@pytest.mark.parametrize("overrides,fragment", [
    ({"network__cni__guess": "cilium"}, "CNI differs (calico-node vs cilium)"),
    ({"ingress__controllers": "traefik.io/ingress-controller"}, "target lacks k8s.io/ingress-nginx"),
])
def test_network_stack_warnings(overrides, fragment):
    row = summaries(FactDiffer().compare(snapshot(), snapshot(**overrides)))[summary_key("NETWORK_STACK")]
    assert row.assessment == Assessment.WARN
    assert fragment in row.notes


def test_addons_compare_names_not_images():
    upgraded = snapshot(addons__kubesystem="coredns=coredns:1.11;kube-proxy=kube-proxy:1.29;extra=x:1")
    assert summaries(FactDiffer().compare(snapshot(), upgraded))[summary_key("ADDONS")].assessment == Assessment.OK

    reduced = snapshot(addons__kubesystem="coredns=coredns:1.10")
    row = summaries(FactDiffer().compare(snapshot(), reduced))[summary_key("ADDONS")]
    assert row.assessment == Assessment.WARN
    assert "kube-proxy" in row.notes


def test_policy_differences_warn():
    target = snapshot(policy__podSecurity__defaultNS="none", admission__validatingwebhooks__count="1")
    row = summaries(FactDiffer().compare(snapshot(), target))[summary_key("POLICY")]
    assert row.assessment == Assessment.WARN
    assert "PSA labels differ" in row.notes
    assert "(1<2)" in row.notes


def test_raw_rows_cover_union_of_keys():
    source = FactModel({"a": "1", "b": "2"})
    target = FactModel({"b": "3", "c": ""})
    raw = {r.key: r for r in FactDiffer().raw_rows(source, target)}
    assert list(raw) == ["a", "b", "c"]
    assert (raw["a"].value_b, raw["a"].assessment, raw["a"].notes) == ("", Assessment.DIFF, "missing on target")
    assert raw["b"].assessment == Assessment.DIFF
    # An empty value still differs from an absent key
    assert (raw["c"].assessment, raw["c"].notes) == (Assessment.DIFF, "missing on source")
