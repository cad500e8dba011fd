#!/usr/bin/env python3
"""
KUBECOMPAT FACT COLLECTOR - The Cartographer
--------------------------------------------
Snapshots a live cluster's observable configuration into a FactModel:
version, API surface, node capacity, storage, networking, kube-system
add-ons, admission/policy posture, CRDs and per-namespace quota signals.

Each query degrades independently: a failed query yields an empty (or
'unknown') value for its facts and the rest of the snapshot is still
captured. Every collected fact is kept in the resulting model.

Author: KubeCompat Team
Date: 2026-10-19
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional

from kubecompat.core.config import AssessmentConfig
from kubecompat.core.errors import InventoryUnavailable
from kubecompat.core.quantity import parse_cpu_milli, parse_memory_bytes
from kubecompat.facts.model import FactModel, encode_list

logger = logging.getLogger("kubecompat.collector")

PSA_LABELS = [
    "pod-security.kubernetes.io/enforce",
    "pod-security.kubernetes.io/audit",
    "pod-security.kubernetes.io/warn",
]


def _items(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [i for i in (payload.get("items") or []) if isinstance(i, dict)]


def _names(payload: Dict[str, Any]) -> List[str]:
    return [(i.get("metadata") or {}).get("name", "") for i in _items(payload)]


def _containers(workload: Dict[str, Any]) -> List[Dict[str, Any]]:
    spec = ((workload.get("spec") or {}).get("template") or {}).get("spec") or {}
    return [c for c in (spec.get("containers") or []) if isinstance(c, dict)]


class FactCollector:
    """
    Produces one FactModel per run. Facts are recorded through 'emit' as
    they are produced; an optional 'sink' callback sees each one immediately.
    """

    def __init__(self, cluster: Any, config: Optional[AssessmentConfig] = None,
                 sink: Optional[Callable[[str, str], None]] = None):
        self.cluster = cluster
        self.config = config or AssessmentConfig()
        self.sink = sink
        self.facts: Dict[str, str] = {}

    def emit(self, key: str, value: Any):
        value = "" if value is None else str(value)
        self.facts[key] = value
        if self.sink:
            self.sink(key, value)

    def _query(self, label: str, fn: Callable[..., Any], *args) -> Optional[Dict[str, Any]]:
        try:
            return fn(*args)
        except InventoryUnavailable as e:
            logger.warning(f"Fact query '{label}' failed: {e.reason}")
            return None

    def collect(self) -> FactModel:
        self.facts = {}
        logger.info("Collecting cluster facts")
        for phase in (
            self._collect_cluster,
            self._collect_apis,
            self._collect_nodes,
            self._collect_storage,
            self._collect_network,
            self._collect_addons,
            self._collect_policy,
            self._collect_crds,
            self._collect_namespaces,
        ):
            phase()
        logger.info(f"Collected {len(self.facts)} facts")
        return FactModel(self.facts)

    # --- Phases ---
    def _collect_cluster(self):
        version = self._query("version", self.cluster.server_version) or {}
        self.emit("cluster.gitVersion", version.get("gitVersion") or "unknown")
        self.emit("cluster.platform", version.get("platform") or "unknown")

    def _collect_apis(self):
        groups = (self._query("apiGroups", self.cluster.api_groups) or {}).get("groups") or []
        preferred = [(g.get("preferredVersion") or {}).get("groupVersion", "") for g in groups]
        served = [v.get("groupVersion", "") for g in groups for v in (g.get("versions") or [])]
        self.emit("apis.preferred", encode_list(["v1"] + preferred))
        self.emit("apis.all", encode_list(["v1"] + served))

        # plural.group of every resource served at a preferred version
        served_resources = set()
        for gv in ["v1"] + sorted(set(p for p in preferred if p)):
            payload = self._query(f"apiResources:{gv}", self.cluster.api_resources, gv) or {}
            group = gv.rpartition("/")[0]
            for res in payload.get("resources") or []:
                name = res.get("name", "")
                if name and "/" not in name:
                    served_resources.add(f"{name}.{group}" if group else name)

        for resource in self.config.must_have_resources:
            self.emit(f"apis.resource.{resource}", "present" if resource in served_resources else "missing")

    def _collect_nodes(self):
        nodes = _items(self._query("nodes", self.cluster.list_resource, "nodes") or {})
        self.emit("capacity.nodes", len(nodes))

        cpu_milli = sum(parse_cpu_milli(((n.get("status") or {}).get("allocatable") or {}).get("cpu")) for n in nodes)
        mem_bytes = sum(parse_memory_bytes(((n.get("status") or {}).get("allocatable") or {}).get("memory")) for n in nodes)
        self.emit("capacity.cpu_milli", cpu_milli)
        self.emit("capacity.mem_bytes", mem_bytes)

        infos = [(n.get("status") or {}).get("nodeInfo") or {} for n in nodes]
        self.emit("nodes.arches", encode_list(i.get("architecture", "") for i in infos))
        self.emit("nodes.osImages", encode_list(self._clean(i.get("osImage", "")) for i in infos))
        any_taints = any((n.get("spec") or {}).get("taints") for n in nodes)
        self.emit("nodes.anyTaints", "yes" if any_taints else "no")

    def _collect_storage(self):
        classes = _items(self._query("storageClasses", self.cluster.list_resource, "storageclasses") or {})
        names = [(sc.get("metadata") or {}).get("name", "") for sc in classes]
        defaults = [
            (sc.get("metadata") or {}).get("name", "") for sc in classes
            if str(((sc.get("metadata") or {}).get("annotations") or {})
                   .get("storageclass.kubernetes.io/is-default-class", "")).lower() == "true"
        ]
        self.emit("storage.classes", encode_list(names))
        self.emit("storage.default", encode_list(defaults))

        csi = self._query("csiDrivers", self.cluster.list_resource, "csidrivers") or {}
        self.emit("storage.csidrivers", encode_list(_names(csi)))
        snaps = self._query("volumeSnapshotClasses", self.cluster.list_resource, "volumesnapshotclasses") or {}
        self.emit("storage.snapclasses", encode_list(_names(snaps)))

    def _collect_network(self):
        daemonsets = self._query("kube-system/daemonsets", self.cluster.list_resource, "daemonsets", "kube-system") or {}
        pattern = re.compile("|".join(map(re.escape, self.config.cni_patterns)), re.IGNORECASE)
        cni = [name for name in _names(daemonsets) if self.config.cni_patterns and pattern.search(name)]
        self.emit("network.cni.guess", encode_list(cni) or "unknown")

        ingress = _items(self._query("ingressClasses", self.cluster.list_resource, "ingressclasses") or {})
        self.emit("ingress.classes", encode_list((i.get("metadata") or {}).get("name", "") for i in ingress))
        self.emit("ingress.controllers", encode_list((i.get("spec") or {}).get("controller", "") for i in ingress))

    def _collect_addons(self):
        by_resource = {}
        for resource in ("daemonsets", "deployments"):
            payload = self._query(f"kube-system/{resource}", self.cluster.list_resource, resource, "kube-system") or {}
            by_resource[resource] = _items(payload)
        workloads = by_resource["daemonsets"] + by_resource["deployments"]

        # name=img1|img2 per workload
        addons = []
        for w in workloads:
            name = (w.get("metadata") or {}).get("name", "")
            images = "|".join(self._clean(c.get("image", "")) for c in _containers(w))
            if name:
                addons.append(f"{name}={images}")
        self.emit("addons.kubesystem", encode_list(addons))

        self.emit("addons.metricsServer", self._images_matching(by_resource["deployments"], "metrics-server") or "missing")
        self.emit("addons.coreDNS", self._images_matching(by_resource["deployments"], "coredns") or "missing")

    def _collect_policy(self):
        try:
            default_ns = self.cluster.get_resource("namespaces", "default")
        except InventoryUnavailable as e:
            logger.warning(f"Fact query 'namespaces/default' failed: {e.reason}")
            default_ns = None
        if default_ns is None:
            self.emit("policy.podSecurity.defaultNS", "none")
        else:
            labels = (default_ns.get("metadata") or {}).get("labels") or {}
            self.emit("policy.podSecurity.defaultNS", ",".join(labels.get(label, "") for label in PSA_LABELS))

        mutating = self._query("mutatingWebhooks", self.cluster.list_resource, "mutatingwebhookconfigurations") or {}
        validating = self._query("validatingWebhooks", self.cluster.list_resource, "validatingwebhookconfigurations") or {}
        self.emit("admission.mutatingwebhooks.count", len(_items(mutating)))
        self.emit("admission.validatingwebhooks.count", len(_items(validating)))

    def _collect_crds(self):
        crds = self._query("crds", self.cluster.list_resource, "customresourcedefinitions") or {}
        names = sorted(n for n in _names(crds) if n)
        self.emit("crds.count", len(names))
        self.emit("crds.sample", encode_list(names[: self.config.crd_sample_size]))

    def _collect_namespaces(self):
        for ns in self.config.quota_namespaces:
            quotas = self._query(f"{ns}/resourcequotas", self.cluster.list_resource, "resourcequotas", ns) or {}
            limits = self._query(f"{ns}/limitranges", self.cluster.list_resource, "limitranges", ns) or {}
            self.emit(f"ns.{ns}.resourcequotas", encode_list(_names(quotas)))
            self.emit(f"ns.{ns}.limitranges", encode_list(_names(limits)))

    # --- Helpers ---
    @staticmethod
    def _clean(value: str) -> str:
        """List items may not carry the fact delimiter."""
        return str(value).replace(";", ",")

    @staticmethod
    def _images_matching(workloads: List[Dict[str, Any]], name_fragment: str) -> str:
        images = [
            FactCollector._clean(c.get("image", ""))
            for w in workloads if name_fragment in (w.get("metadata") or {}).get("name", "")
            for c in _containers(w)
        ]
        return encode_list(images)
