#!/usr/bin/env python3
"""
KUBECOMPAT CLUSTER CLIENT - The Read-Only Window
------------------------------------------------
Thin wrapper over the official kubernetes client. Every call returns plain
JSON-style dictionaries (never raw client objects) so the inventory and
collector layers can be exercised with simple fakes.

Failures are normalised into InventoryUnavailable / ResourceNotFound. The
client exposes no write methods; the only call that reaches the API server
with a full object is the server-side dry-run, which persists nothing.

Author: KubeCompat Team
Date: 2026-10-19
"""

import logging
import subprocess
from typing import Any, Callable, Dict, Optional, Tuple

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from kubecompat.core.errors import InventoryUnavailable, ResourceNotFound, ValidationUnavailable

logger = logging.getLogger("kubecompat.cluster")

# resource -> (API class, list method, namespaced)
LISTERS = {
    "nodes": ("CoreV1Api", "list_node", False),
    "namespaces": ("CoreV1Api", "list_namespace", False),
    "resourcequotas": ("CoreV1Api", "list_namespaced_resource_quota", True),
    "limitranges": ("CoreV1Api", "list_namespaced_limit_range", True),
    "storageclasses": ("StorageV1Api", "list_storage_class", False),
    "csidrivers": ("StorageV1Api", "list_csi_driver", False),
    "ingressclasses": ("NetworkingV1Api", "list_ingress_class", False),
    "daemonsets": ("AppsV1Api", "list_namespaced_daemon_set", True),
    "deployments": ("AppsV1Api", "list_namespaced_deployment", True),
    "mutatingwebhookconfigurations": ("AdmissionregistrationV1Api", "list_mutating_webhook_configuration", False),
    "validatingwebhookconfigurations": ("AdmissionregistrationV1Api", "list_validating_webhook_configuration", False),
    "customresourcedefinitions": ("ApiextensionsV1Api", "list_custom_resource_definition", False),
}

# resource -> (API class, read method, namespaced)
READERS = {
    "namespaces": ("CoreV1Api", "read_namespace", False),
    "serviceaccounts": ("CoreV1Api", "read_namespaced_service_account", True),
    "configmaps": ("CoreV1Api", "read_namespaced_config_map", True),
}

# Served through CRDs, so only reachable via the custom objects API
CUSTOM_LISTERS = {
    "volumesnapshotclasses": ("snapshot.storage.k8s.io", "v1", "volumesnapshotclasses"),
}

_TRANSPORT_ERRORS = (urllib3.exceptions.HTTPError, OSError)


class ClusterClient:
    """
    Read-only access to one cluster, selected by kubeconfig context.
    """

    def __init__(self, context: Optional[str] = None, kubectl: str = "kubectl",
                 api_client: Optional[client.ApiClient] = None, dry_run_timeout: int = 300):
        self.context = context
        self.kubectl = kubectl
        self.dry_run_timeout = dry_run_timeout
        self.connect_error: Optional[str] = None
        self.api_client = api_client if api_client is not None else self._connect()
        self._apis: Dict[str, Any] = {}

    def _connect(self) -> Optional[client.ApiClient]:
        """
        Uses the local kubeconfig (same context as kubectl), falling back to
        in-cluster credentials. Never raises: a missing config leaves the
        client disconnected and every query reports unavailable.
        """
        try:
            return config.new_client_from_config(context=self.context)
        except (ConfigException, OSError) as kube_err:
            if self.context is None:
                try:
                    config.load_incluster_config()
                    return client.ApiClient()
                except ConfigException:
                    pass
            self.connect_error = f"no usable kubeconfig: {kube_err}"
            logger.warning(f"Cluster connection unavailable ({self.connect_error})")
            return None

    def _api(self, name: str) -> Any:
        if self.api_client is None:
            raise InventoryUnavailable("connect", self.connect_error or "not connected")
        if name not in self._apis:
            self._apis[name] = getattr(client, name)(self.api_client)
        return self._apis[name]

    def _call(self, query: str, fn: Callable[..., Any], *args, **kwargs) -> Dict[str, Any]:
        try:
            obj = fn(*args, **kwargs)
        except ApiException as e:
            if e.status == 404:
                raise ResourceNotFound(query)
            raise InventoryUnavailable(query, e.reason or str(e), status=e.status)
        except _TRANSPORT_ERRORS as e:
            raise InventoryUnavailable(query, str(e))
        if isinstance(obj, dict):
            return obj
        return self.api_client.sanitize_for_serialization(obj)

    # --- Discovery ---
    def server_version(self) -> Dict[str, Any]:
        return self._call("version", self._api("VersionApi").get_code)

    def api_groups(self) -> Dict[str, Any]:
        """APIGroupList from /apis."""
        return self._call("/apis", self._api("ApisApi").get_api_versions)

    def api_resources(self, group_version: str) -> Dict[str, Any]:
        """APIResourceList for one groupVersion ('v1' is the core group)."""
        query = f"/api/{group_version}" if group_version == "v1" else f"/apis/{group_version}"
        if group_version == "v1":
            return self._call(query, self._api("CoreV1Api").get_api_resources)
        group, _, version = group_version.rpartition("/")
        return self._call(query, self._api("CustomObjectsApi").get_api_resources, group, version)

    # --- Typed resources ---
    def list_resource(self, resource: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        query = f"{resource}" if namespace is None else f"{namespace}/{resource}"
        if resource in CUSTOM_LISTERS:
            group, version, plural = CUSTOM_LISTERS[resource]
            return self._call(query, self._api("CustomObjectsApi").list_cluster_custom_object,
                              group, version, plural)

        api_name, method, namespaced = LISTERS[resource]
        fn = getattr(self._api(api_name), method)
        if namespaced:
            return self._call(query, fn, namespace or "default")
        return self._call(query, fn)

    def get_resource(self, resource: str, name: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        api_name, method, namespaced = READERS[resource]
        fn = getattr(self._api(api_name), method)
        if namespaced:
            return self._call(f"{resource}/{namespace}/{name}", fn, name, namespace or "default")
        return self._call(f"{resource}/{name}", fn, name)

    # --- Validation ---
    def dry_run(self, manifest_yaml: str) -> Tuple[bool, str]:
        """
        Submits the whole bundle to 'kubectl apply --dry-run=server' in one
        call. Returns (accepted, stderr).
        """
        cmd = [self.kubectl]
        if self.context:
            cmd += ["--context", self.context]
        cmd += ["apply", "--dry-run=server", "-f", "-"]

        try:
            completed = subprocess.run(
                cmd,
                input=manifest_yaml.encode("utf-8"),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
                timeout=self.dry_run_timeout,
            )
        except FileNotFoundError:
            raise ValidationUnavailable(f"{self.kubectl} executable not found")
        except subprocess.TimeoutExpired:
            raise ValidationUnavailable(f"dry-run timed out after {self.dry_run_timeout}s")

        stderr = (completed.stderr or b"").decode("utf-8", errors="ignore")
        return completed.returncode == 0, stderr
