#!/usr/bin/env python3
"""
KUBECOMPAT CORE MODELS
----------------------
Defines the fundamental data structures shared across the KubeCompat engine:
the typed requirement identities extracted from manifests, the verdicts the
evaluator produces, and the rows emitted by the fact differ.

Author: KubeCompat Team
Date: 2026-10-19
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Union


class Result(str, Enum):
    """Outcome of a single compatibility check."""
    OK = "OK"
    WARN = "WARN"
    FAIL = "FAIL"
    INFO = "INFO"


class Assessment(str, Enum):
    """Outcome of a fact comparison row."""
    OK = "OK"
    WARN = "WARN"
    FAIL = "FAIL"
    SAME = "SAME"
    DIFF = "DIFF"


class RequirementKind(str, Enum):
    """
    The requirement families a manifest bundle can place on a target cluster.
    The value doubles as the 'Check' label in reports.
    """
    API_KIND = "API"
    STORAGE_CLASS = "StorageClass"
    INGRESS_CLASS = "IngressClass"
    NAMESPACE = "Namespace"
    SERVICE_ACCOUNT = "RBAC.ServiceAccount"


# Bundle-level pseudo checks (not tied to a single requirement)
CHECK_MANIFEST = "Manifest"
CHECK_SERVER_DRY_RUN = "ServerDryRun"
CHECK_INVENTORY = "Inventory"

# Fixed emission order for the report
CHECK_ORDER = [CHECK_MANIFEST] + [k.value for k in RequirementKind] + [CHECK_SERVER_DRY_RUN, CHECK_INVENTORY]

# Pseudo items used when a requirement has no explicit name
IMPLICIT_DEFAULT_ITEM = "(implicit default)"
NONE_SPECIFIED_ITEM = "(none specified)"
BUNDLE_ITEM = "(bundle)"


@dataclass(frozen=True, order=True)
class GVK:
    """An apiVersion + Kind pair, the unit of API availability checking."""
    api_version: str
    kind: str

    @property
    def group(self) -> str:
        """The API group; empty for the core group ('v1')."""
        if "/" not in self.api_version:
            return ""
        return self.api_version.rsplit("/", 1)[0]

    def __str__(self) -> str:
        return f"{self.api_version} {self.kind}"


@dataclass(frozen=True, order=True)
class ServiceAccountRef:
    """A namespaced ServiceAccount identity."""
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


RequirementItem = Union[GVK, ServiceAccountRef, str]


@dataclass(frozen=True)
class Requirement:
    """
    A single typed demand a manifest bundle places on the target cluster.

    Metadata carries kind-specific auxiliary data, most importantly
    'self_created' for namespaces and service accounts defined in the
    same bundle.
    """
    kind: RequirementKind
    item: RequirementItem
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def self_created(self) -> bool:
        return bool(self.metadata.get("self_created", False))


@dataclass(frozen=True)
class Verdict:
    """Terminal output of evaluation: one row of the compatibility report."""
    check: str
    item: str
    result: Result
    details: str = ""

    def as_row(self) -> Dict[str, str]:
        return {
            "Check": self.check,
            "Item": self.item,
            "Result": self.result.value,
            "Details": self.details,
        }


@dataclass(frozen=True)
class DiffRow:
    """One row of a cluster-to-cluster comparison."""
    key: str
    value_a: str
    value_b: str
    assessment: Assessment
    notes: str = ""

    def as_row(self) -> Dict[str, str]:
        return {
            "Key": self.key,
            "ClusterA": self.value_a,
            "ClusterB": self.value_b,
            "Assessment": self.assessment.value,
            "Notes": self.notes,
        }
