from kubecompat.core.models import CHECK_ORDER, GVK, DiffRow, Assessment, Result, ServiceAccountRef, Verdict


def test_gvk_group():
    assert GVK("v1", "Pod").group == ""
    assert GVK("networking.k8s.io/v1", "Ingress").group == "networking.k8s.io"
    assert str(GVK("apps/v1", "Deployment")) == "apps/v1 Deployment"


def test_service_account_ref_renders_namespace_first():
    assert str(ServiceAccountRef("payments", "api")) == "payments/api"


def test_report_rows():
    assert Verdict("API", "v1 Pod", Result.OK, "Supported on target").as_row() == {
        "Check": "API", "Item": "v1 Pod", "Result": "OK", "Details": "Supported on target",
    }
    assert DiffRow("crds.count", "3", "5", Assessment.DIFF).as_row()["Assessment"] == "DIFF"


def test_check_order():
    assert CHECK_ORDER == ["Manifest", "API", "StorageClass", "IngressClass", "Namespace", "RBAC.ServiceAccount",
                           "ServerDryRun", "Inventory"]
