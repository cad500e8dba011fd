"""
Shared fixtures: an in-memory cluster that answers the same calls as
ClusterClient, so every flow runs without a live API server.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

from kubecompat.core.errors import InventoryUnavailable, ResourceNotFound, ValidationUnavailable


def group(name, preferred, *versions):
    """APIGroup payload as returned by /apis."""
    served = versions or (preferred,)
    return {
        "name": name,
        "preferredVersion": {"groupVersion": f"{name}/{preferred}"},
        "versions": [{"groupVersion": f"{name}/{v}"} for v in served],
    }


def resources(*pairs):
    """APIResourceList payload from (plural, Kind) pairs."""
    return {"resources": [{"name": name, "kind": kind} for name, kind in pairs]}


def named(name, annotations=None, **extra):
    obj = {"metadata": {"name": name}}
    if annotations:
        obj["metadata"]["annotations"] = annotations
    obj.update(extra)
    return obj


class FakeCluster:
    """
    Dict-backed stand-in for ClusterClient. Queries listed in 'failing'
    raise InventoryUnavailable; 'offline' makes every query fail.
    """

    def __init__(self, groups=None, api=None, lists=None, objects=None,
                 version=None, dry_run_result=(True, ""), failing=(), offline=False):
        self.groups = groups or []
        self.api = api or {}
        self.lists = lists or {}
        self.objects = objects or {}
        self.version = version or {}
        self.dry_run_result = dry_run_result
        self.failing = set(failing)
        self.offline = offline
        self.calls = []
        self.dry_runs = []

    def _guard(self, query):
        self.calls.append(query)
        if self.offline or query in self.failing:
            raise InventoryUnavailable(query, "connection refused")

    def server_version(self):
        self._guard("version")
        return self.version

    def api_groups(self):
        self._guard("/apis")
        return {"groups": self.groups}

    def api_resources(self, group_version):
        self._guard(f"resources:{group_version}")
        return self.api.get(group_version, {"resources": []})

    def list_resource(self, resource, namespace=None):
        key = resource if namespace is None else f"{namespace}/{resource}"
        self._guard(key)
        return {"items": list(self.lists.get(key, []))}

    def get_resource(self, resource, name, namespace=None):
        key = (resource, namespace, name)
        self._guard(f"{resource}/{namespace}/{name}")
        if key not in self.objects:
            raise ResourceNotFound(f"{resource}/{namespace}/{name}")
        return self.objects[key]

    def dry_run(self, manifest_yaml):
        self.dry_runs.append(manifest_yaml)
        if isinstance(self.dry_run_result, Exception):
            raise self.dry_run_result
        if self.offline:
            raise ValidationUnavailable("kubectl executable not found")
        return self.dry_run_result


@pytest.fixture
def target_cluster():
    """A small but realistic target: apps/v1, batch/v1 only, gp2 default SC."""
    return FakeCluster(
        groups=[
            group("apps", "v1"),
            group("batch", "v1", "v1", "v1beta1"),
            group("networking.k8s.io", "v1"),
            group("rbac.authorization.k8s.io", "v1"),
        ],
        api={
            "v1": resources(("namespaces", "Namespace"), ("services", "Service"),
                            ("persistentvolumeclaims", "PersistentVolumeClaim"),
                            ("serviceaccounts", "ServiceAccount"), ("configmaps", "ConfigMap")),
            "apps/v1": resources(("deployments", "Deployment"), ("deployments/scale", "Scale"),
                                 ("statefulsets", "StatefulSet"), ("daemonsets", "DaemonSet")),
            "batch/v1": resources(("jobs", "Job"), ("cronjobs", "CronJob")),
            "batch/v1beta1": resources(("cronjobs", "CronJob")),
            "networking.k8s.io/v1": resources(("ingresses", "Ingress"), ("ingressclasses", "IngressClass")),
            "rbac.authorization.k8s.io/v1": resources(("rolebindings", "RoleBinding"),
                                                      ("clusterrolebindings", "ClusterRoleBinding")),
        },
        lists={
            "storageclasses": [
                named("gp2", {"storageclass.kubernetes.io/is-default-class": "true"}),
                named("io1"),
            ],
            "ingressclasses": [named("nginx", spec={"controller": "k8s.io/ingress-nginx"})],
            "namespaces": [named("default"), named("kube-system"), named("payments")],
        },
        objects={
            ("serviceaccounts", "payments", "api"): named("api"),
        },
    )
