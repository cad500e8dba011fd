#!/usr/bin/env python3
"""
KUBECOMPAT EXTRACTOR - The Archeologist
---------------------------------------
Mines the typed requirements a manifest bundle places on a target cluster:
API kinds, StorageClass and IngressClass references, namespace usage and
RBAC ServiceAccount subjects, together with what the bundle creates for
itself.

Extraction is pure. Identical bundles always yield identical, sorted
requirement sets. Documents missing kind/apiVersion are silently skipped.

Author: KubeCompat Team
Date: 2026-10-19
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from kubecompat.core.models import GVK, Requirement, RequirementKind, ServiceAccountRef
from kubecompat.manifests.loader import ManifestBundle

RBAC_BINDING_KINDS = ("RoleBinding", "ClusterRoleBinding")


def _text(value: Any) -> str:
    """Normalises an optional scalar to a stripped string ('' when absent)."""
    if value is None:
        return ""
    return str(value).strip()


def _section(doc: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = doc.get(key)
    return value if isinstance(value, dict) else {}


@dataclass
class RequirementSet:
    """Everything extracted from one bundle, already sorted."""
    api_kinds: List[GVK] = field(default_factory=list)
    storage_classes: List[str] = field(default_factory=list)
    implicit_storage_class: bool = False
    ingress_classes: List[str] = field(default_factory=list)
    implicit_ingress_class: bool = False
    namespaces_used: List[str] = field(default_factory=list)
    namespaces_created: List[str] = field(default_factory=list)
    service_account_subjects: List[ServiceAccountRef] = field(default_factory=list)
    service_accounts_created: List[ServiceAccountRef] = field(default_factory=list)

    def requirements(self) -> List[Requirement]:
        """Flattens the set into typed Requirement records."""
        created_ns = set(self.namespaces_created)
        created_sa = set(self.service_accounts_created)

        reqs = [Requirement(RequirementKind.API_KIND, gvk) for gvk in self.api_kinds]
        reqs += [Requirement(RequirementKind.STORAGE_CLASS, sc) for sc in self.storage_classes]
        reqs += [Requirement(RequirementKind.INGRESS_CLASS, ic) for ic in self.ingress_classes]
        reqs += [
            Requirement(RequirementKind.NAMESPACE, ns, {"self_created": ns in created_ns})
            for ns in self.namespaces_used
        ]
        reqs += [
            Requirement(RequirementKind.SERVICE_ACCOUNT, sa, {"self_created": sa in created_sa})
            for sa in self.service_account_subjects
        ]
        return reqs

    def of_kind(self, kind: RequirementKind) -> List[Requirement]:
        return [req for req in self.requirements() if req.kind == kind]


class RequirementExtractor:
    """Stateless; every method is a pure function of the bundle."""

    def extract_api_kinds(self, bundle: ManifestBundle) -> List[GVK]:
        found = set()
        for doc in bundle.mappings():
            api_version, kind = _text(doc.get("apiVersion")), _text(doc.get("kind"))
            if api_version and kind:
                found.add(GVK(api_version, kind))
        return sorted(found)

    def extract_storage_class_refs(self, bundle: ManifestBundle) -> Tuple[List[str], bool]:
        """Explicit PVC storageClassName values, plus whether any PVC defers to the default."""
        return self._class_refs(bundle, "PersistentVolumeClaim", "storageClassName")

    def extract_ingress_class_refs(self, bundle: ManifestBundle) -> Tuple[List[str], bool]:
        return self._class_refs(bundle, "Ingress", "ingressClassName")

    def _class_refs(self, bundle: ManifestBundle, kind: str, spec_field: str) -> Tuple[List[str], bool]:
        explicit = set()
        implicit = False
        for doc in self._of_kind(bundle, kind):
            name = _text(_section(doc, "spec").get(spec_field))
            if name:
                explicit.add(name)
            else:
                implicit = True
        return sorted(explicit), implicit

    def extract_namespace_usage(self, bundle: ManifestBundle) -> List[str]:
        used = set()
        for doc in bundle.mappings():
            ns = _text(_section(doc, "metadata").get("namespace"))
            if ns:
                used.add(ns)
        return sorted(used)

    def extract_namespaces_created(self, bundle: ManifestBundle) -> List[str]:
        created = set()
        for doc in self._of_kind(bundle, "Namespace"):
            name = _text(_section(doc, "metadata").get("name"))
            if name:
                created.add(name)
        return sorted(created)

    def extract_service_account_subjects(self, bundle: ManifestBundle) -> List[ServiceAccountRef]:
        subjects = set()
        for doc in self._of_kind(bundle, *RBAC_BINDING_KINDS):
            entries = doc.get("subjects")
            if not isinstance(entries, list):
                continue
            for subject in entries:
                if not isinstance(subject, dict) or subject.get("kind") != "ServiceAccount":
                    continue
                name = _text(subject.get("name"))
                if name:
                    subjects.add(ServiceAccountRef(_text(subject.get("namespace")) or "default", name))
        return sorted(subjects)

    def extract_service_accounts_created(self, bundle: ManifestBundle) -> List[ServiceAccountRef]:
        created = set()
        for doc in self._of_kind(bundle, "ServiceAccount"):
            metadata = _section(doc, "metadata")
            name = _text(metadata.get("name"))
            if name:
                created.add(ServiceAccountRef(_text(metadata.get("namespace")) or "default", name))
        return sorted(created)

    def extract(self, bundle: ManifestBundle) -> RequirementSet:
        storage, implicit_storage = self.extract_storage_class_refs(bundle)
        ingress, implicit_ingress = self.extract_ingress_class_refs(bundle)
        return RequirementSet(
            api_kinds=self.extract_api_kinds(bundle),
            storage_classes=storage,
            implicit_storage_class=implicit_storage,
            ingress_classes=ingress,
            implicit_ingress_class=implicit_ingress,
            namespaces_used=self.extract_namespace_usage(bundle),
            namespaces_created=self.extract_namespaces_created(bundle),
            service_account_subjects=self.extract_service_account_subjects(bundle),
            service_accounts_created=self.extract_service_accounts_created(bundle),
        )

    @staticmethod
    def _of_kind(bundle: ManifestBundle, *kinds: str) -> Iterable[Dict[str, Any]]:
        return (doc for doc in bundle.mappings() if doc.get("kind") in kinds)
