#!/usr/bin/env python3
"""
KUBECOMPAT CAPABILITY INVENTORY - The Surveyor
----------------------------------------------
Builds a normalised, immutable picture of what a target cluster supports:
API kinds (preferred versions only), StorageClasses and the default one,
IngressClasses and a best-effort default hint, and namespaces.
ServiceAccounts are probed lazily, one call per distinct reference, since a
full listing can be large.

Every query degrades to an empty result when the cluster cannot answer. The
failed query names travel with the Inventory so the report can say which
capabilities are unknown rather than silently absent.

Author: KubeCompat Team
Date: 2026-10-19
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Set

from kubecompat.core.errors import InventoryUnavailable, ResourceNotFound
from kubecompat.core.models import GVK, ServiceAccountRef

logger = logging.getLogger("kubecompat.inventory")

DEFAULT_SC_ANNOTATION = "storageclass.kubernetes.io/is-default-class"
DEFAULT_IC_ANNOTATION = "ingressclass.kubernetes.io/is-default-class"

# Controller-specific fallback for the default ingress class
NGINX_CONTROLLER_NAMESPACE = "ingress-nginx"
NGINX_CONTROLLER_CONFIGMAP = "ingress-nginx-controller"


def _items(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [i for i in (payload.get("items") or []) if isinstance(i, dict)]


def _name(obj: Dict[str, Any]) -> str:
    return ((obj.get("metadata") or {}).get("name")) or ""


def _annotated_true(obj: Dict[str, Any], annotation: str) -> bool:
    annotations = (obj.get("metadata") or {}).get("annotations") or {}
    return str(annotations.get(annotation, "")).lower() == "true"


def _default_of(items: List[Dict[str, Any]], annotation: str) -> Optional[str]:
    """First (sorted) object flagged as the cluster default."""
    defaults = sorted(_name(i) for i in items if _annotated_true(i, annotation) and _name(i))
    return defaults[0] if defaults else None


@dataclass(frozen=True)
class Inventory:
    """What the target cluster offers, per requirement kind."""
    supported_gvks: FrozenSet[GVK] = frozenset()
    group_preferred: Dict[str, str] = field(default_factory=dict, hash=False)
    storage_classes: FrozenSet[str] = frozenset()
    default_storage_class: Optional[str] = None
    ingress_classes: FrozenSet[str] = frozenset()
    default_ingress_class: Optional[str] = None
    namespaces: FrozenSet[str] = frozenset()
    existing_service_accounts: FrozenSet[ServiceAccountRef] = frozenset()
    unavailable: FrozenSet[str] = frozenset()

    def lookup_group_hint(self, group: str) -> Optional[str]:
        """Preferred groupVersion of an API group, for diagnostics only."""
        if not group:
            return None
        return self.group_preferred.get(group)

    def service_account_exists(self, ref: ServiceAccountRef) -> bool:
        return ref in self.existing_service_accounts


class CapabilityInventory:
    """
    Queries one cluster through a ClusterClient-compatible object and
    assembles an Inventory.
    """

    def __init__(self, cluster: Any, max_workers: int = 4):
        self.cluster = cluster
        self.max_workers = max(1, int(max_workers))
        self.unavailable: Set[str] = set()
        self._sa_cache: Dict[ServiceAccountRef, bool] = {}
        self._groups: Optional[List[Dict[str, Any]]] = None

    def _safe(self, label: str, fn: Callable[..., Any], *args) -> Dict[str, Any]:
        """Runs one query; on failure records it and returns an empty payload."""
        try:
            return fn(*args)
        except InventoryUnavailable as e:
            logger.warning(f"Inventory query '{label}' unavailable: {e.reason}")
            self.unavailable.add(label)
            return {}

    # --- API surface ---
    def _api_groups(self) -> List[Dict[str, Any]]:
        if self._groups is None:
            payload = self._safe("apiGroups", self.cluster.api_groups)
            self._groups = [g for g in (payload.get("groups") or []) if isinstance(g, dict)]
        return self._groups

    def list_preferred_group_versions(self) -> Dict[str, str]:
        """group name -> preferred groupVersion."""
        preferred = {}
        for group in self._api_groups():
            gv = (group.get("preferredVersion") or {}).get("groupVersion")
            if group.get("name") and gv:
                preferred[group["name"]] = gv
        return preferred

    def list_kinds_for_group_version(self, group_version: str) -> Set[str]:
        payload = self._safe(f"apiResources:{group_version}", self.cluster.api_resources, group_version)
        kinds = set()
        for resource in payload.get("resources") or []:
            # Subresources (e.g. 'deployments/scale') report the parent's kind
            if resource.get("name") and resource.get("kind") and "/" not in resource["name"]:
                kinds.add(resource["kind"])
        return kinds

    def build_supported_gvk(self) -> FrozenSet[GVK]:
        """
        Core v1 plus every group's *preferred* version only. A manifest pinned
        to another served version of the same group is not counted as
        supported.
        """
        supported = {GVK("v1", kind) for kind in self.list_kinds_for_group_version("v1")}
        for gv in sorted(set(self.list_preferred_group_versions().values())):
            supported.update(GVK(gv, kind) for kind in self.list_kinds_for_group_version(gv))
        return frozenset(supported)

    # --- Storage ---
    def _storage_class_items(self) -> List[Dict[str, Any]]:
        return _items(self._safe("storageClasses", self.cluster.list_resource, "storageclasses"))

    def storage_class_names(self) -> FrozenSet[str]:
        return frozenset(n for n in map(_name, self._storage_class_items()) if n)

    def default_storage_class(self, items: Optional[List[Dict[str, Any]]] = None) -> Optional[str]:
        return _default_of(self._storage_class_items() if items is None else items, DEFAULT_SC_ANNOTATION)

    # --- Ingress ---
    def _ingress_class_items(self) -> List[Dict[str, Any]]:
        return _items(self._safe("ingressClasses", self.cluster.list_resource, "ingressclasses"))

    def ingress_class_names(self) -> FrozenSet[str]:
        return frozenset(n for n in map(_name, self._ingress_class_items()) if n)

    def default_ingress_class_hint(self, items: Optional[List[Dict[str, Any]]] = None) -> Optional[str]:
        """
        Best effort: the annotated default IngressClass, else the ingress-nginx
        controller's 'default-ingress-class' setting. None when unknown.
        """
        annotated = _default_of(self._ingress_class_items() if items is None else items, DEFAULT_IC_ANNOTATION)
        if annotated:
            return annotated

        try:
            cm = self.cluster.get_resource("configmaps", NGINX_CONTROLLER_CONFIGMAP, NGINX_CONTROLLER_NAMESPACE)
        except InventoryUnavailable:
            # Controller-specific probe; absence is normal and not reported
            return None
        return ((cm.get("data") or {}).get("default-ingress-class")) or None

    # --- Namespaces & RBAC ---
    def namespace_names(self) -> FrozenSet[str]:
        items = _items(self._safe("namespaces", self.cluster.list_resource, "namespaces"))
        return frozenset(n for n in map(_name, items) if n)

    def service_account_exists(self, ref: ServiceAccountRef) -> bool:
        """
        Lazy existence probe, memoised per run. Any failure other than a
        clean 404 is logged and treated as 'not present'.
        """
        if ref in self._sa_cache:
            return self._sa_cache[ref]
        try:
            self.cluster.get_resource("serviceaccounts", ref.name, ref.namespace)
            exists = True
        except ResourceNotFound:
            exists = False
        except InventoryUnavailable as e:
            logger.warning(f"ServiceAccount probe for {ref} failed: {e.reason}")
            self.unavailable.add(f"serviceAccount:{ref}")
            exists = False
        self._sa_cache[ref] = exists
        return exists

    def probe_service_accounts(self, refs: Iterable[ServiceAccountRef]) -> FrozenSet[ServiceAccountRef]:
        """
        Probes distinct refs on a bounded worker pool. Each probe is
        independent and idempotent; the result is an unordered set.
        """
        distinct = sorted(set(refs))
        if not distinct:
            return frozenset()
        workers = min(self.max_workers, len(distinct))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            found = list(pool.map(self.service_account_exists, distinct))
        return frozenset(ref for ref, exists in zip(distinct, found) if exists)

    def build(self, service_accounts: Iterable[ServiceAccountRef] = ()) -> Inventory:
        """
        Runs every query once and returns the immutable Inventory.
        'service_accounts' limits SA probing to the refs that actually need it.
        """
        logger.info("Building capability inventory from target cluster")
        supported = self.build_supported_gvk()
        preferred = self.list_preferred_group_versions()
        storage_items = self._storage_class_items()
        ingress_items = self._ingress_class_items()

        existing_sa = self.probe_service_accounts(service_accounts)

        return Inventory(
            supported_gvks=supported,
            group_preferred=preferred,
            storage_classes=frozenset(n for n in map(_name, storage_items) if n),
            default_storage_class=self.default_storage_class(storage_items),
            ingress_classes=frozenset(n for n in map(_name, ingress_items) if n),
            default_ingress_class=self.default_ingress_class_hint(ingress_items),
            namespaces=self.namespace_names(),
            existing_service_accounts=existing_sa,
            unavailable=frozenset(self.unavailable),
        )

