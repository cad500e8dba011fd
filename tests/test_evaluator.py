import pytest

from kubecompat.core.models import GVK, Result, ServiceAccountRef, Verdict
from kubecompat.inventory.inventory import Inventory
from kubecompat.manifests.extractor import RequirementSet
from kubecompat.rules.evaluator import CompatibilityEvaluator


@pytest.fixture
def inventory():
    return Inventory(
        supported_gvks=frozenset({GVK("v1", "Namespace"), GVK("apps/v1", "Deployment"), GVK("batch/v1", "CronJob")}),
        group_preferred={"apps": "apps/v1", "batch": "batch/v1"},
        storage_classes=frozenset({"gp2", "io1"}),
        default_storage_class="gp2",
        ingress_classes=frozenset({"nginx"}),
        namespaces=frozenset({"default", "payments"}),
        existing_service_accounts=frozenset({ServiceAccountRef("payments", "api")}),
    )


def by_item(verdicts, check):
    return {v.item: v for v in verdicts if v.check == check}


def test_deprecated_version_fails_with_group_hint(inventory):
    reqs = RequirementSet(api_kinds=[GVK("batch/v1beta1", "CronJob"), GVK("apps/v1", "Deployment")])
    verdicts = by_item(CompatibilityEvaluator().evaluate(reqs, inventory), "API")
    assert verdicts["batch/v1beta1 CronJob"].result == Result.FAIL
    assert verdicts["batch/v1beta1 CronJob"].details == "Group present; preferred=batch/v1"
    assert verdicts["apps/v1 Deployment"].result == Result.OK


def test_unknown_group_fails_without_hint(inventory):
    reqs = RequirementSet(api_kinds=[GVK("monitoring.coreos.com/v1", "ServiceMonitor")])
    [verdict] = CompatibilityEvaluator().evaluate(reqs, inventory)
    assert verdict.result == Result.FAIL
    assert verdict.details == "Not found on target"


def test_implicit_storage_class_uses_target_default():
    inv = Inventory(storage_classes=frozenset({"gp3"}), default_storage_class="gp3")
    [verdict] = CompatibilityEvaluator().evaluate(RequirementSet(implicit_storage_class=True), inv)
    assert verdict.item == "(implicit default)"
    assert verdict.result == Result.OK
    assert "gp3" in verdict.details


def test_implicit_storage_class_without_default_fails():
    [verdict] = CompatibilityEvaluator().evaluate(RequirementSet(implicit_storage_class=True), Inventory())
    assert verdict.result == Result.FAIL


def test_missing_named_class_warns_when_default_exists(inventory):
    reqs = RequirementSet(storage_classes=["fast-ssd", "io1"])
    verdicts = by_item(CompatibilityEvaluator().evaluate(reqs, inventory), "StorageClass")
    assert verdicts["fast-ssd"].result == Result.WARN
    assert "gp2" in verdicts["fast-ssd"].details
    assert verdicts["io1"].result == Result.OK


def test_missing_named_class_fails_without_default():
    [verdict] = CompatibilityEvaluator().evaluate(RequirementSet(storage_classes=["fast-ssd"]), Inventory())
    assert verdict.result == Result.FAIL


def test_ingress_classes(inventory):
    reqs = RequirementSet(ingress_classes=["nginx", "traefik"], implicit_ingress_class=True)
    verdicts = by_item(CompatibilityEvaluator().evaluate(reqs, inventory), "IngressClass")
    assert verdicts["nginx"].result == Result.OK
    assert verdicts["traefik"].result == Result.FAIL
    assert verdicts["(none specified)"].result == Result.INFO
    assert verdicts["(none specified)"].details == "Relies on controller default; ensure one is set"


def test_ingress_hint_mentions_known_default():
    inv = Inventory(default_ingress_class="nginx")
    [verdict] = CompatibilityEvaluator().evaluate(RequirementSet(implicit_ingress_class=True), inv)
    assert verdict.details.endswith("(target default=nginx)")


def test_self_created_namespace_is_ok_regardless_of_target(inventory):
    reqs = RequirementSet(namespaces_used=["billing", "payments", "reports"], namespaces_created=["billing"])
    verdicts = by_item(CompatibilityEvaluator().evaluate(reqs, inventory), "Namespace")
    assert verdicts["billing"] == Verdict("Namespace", "billing", Result.OK, "Created by manifests")
    assert verdicts["payments"].details == "Exists on target"
    assert verdicts["reports"].result == Result.FAIL


def test_service_accounts(inventory):
    reqs = RequirementSet(
        service_account_subjects=[
            ServiceAccountRef("billing", "invoicer"),
            ServiceAccountRef("payments", "api"),
            ServiceAccountRef("default", "deployer"),
        ],
        service_accounts_created=[ServiceAccountRef("billing", "invoicer")],
    )
    verdicts = by_item(CompatibilityEvaluator().evaluate(reqs, inventory), "RBAC.ServiceAccount")
    assert verdicts["billing/invoicer"].details == "Created by manifests"
    assert verdicts["payments/api"].details == "Exists on target"
    assert verdicts["default/deployer"].result == Result.FAIL


def test_inventory_gaps_are_reported_as_info():
    inv = Inventory(unavailable=frozenset({"storageClasses"}))
    [verdict] = CompatibilityEvaluator().evaluate(RequirementSet(), inv)
    assert (verdict.check, verdict.item, verdict.result) == ("Inventory", "storageClasses", Result.INFO)


def test_one_verdict_per_item_in_fixed_check_order(inventory):
    reqs = RequirementSet(
        api_kinds=[GVK("apps/v1", "Deployment"), GVK("v1", "Namespace")],
        storage_classes=["io1"],
        namespaces_used=["payments"],
        service_account_subjects=[ServiceAccountRef("payments", "api")],
    )
    verdicts = CompatibilityEvaluator().evaluate(reqs, inventory)
    keys = [(v.check, v.item) for v in verdicts]
    assert len(keys) == len(set(keys))
    assert [v.check for v in verdicts] == ["API", "API", "StorageClass", "Namespace", "RBAC.ServiceAccount"]


def test_evaluation_is_idempotent(inventory):
    reqs = RequirementSet(
        api_kinds=[GVK("batch/v1beta1", "CronJob")],
        storage_classes=["fast-ssd"],
        implicit_storage_class=True,
        namespaces_used=["reports"],
    )
    evaluator = CompatibilityEvaluator()
    assert evaluator.evaluate(reqs, inventory) == evaluator.evaluate(reqs, inventory)


def test_normalize_collapses_duplicates_and_orders():
    a = Verdict("ServerDryRun", "(bundle)", Result.OK, "accepted")
    b = Verdict("API", "v1 Service", Result.OK, "Supported on target")
    assert CompatibilityEvaluator.normalize([a, b, a]) == [b, a]
