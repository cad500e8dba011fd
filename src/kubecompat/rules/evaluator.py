#!/usr/bin/env python3
"""
KUBECOMPAT EVALUATOR - The Rules Engine
---------------------------------------
Matches every extracted requirement against the target Inventory and issues
exactly one Verdict per distinct requirement item. Each rule family is a
small method registered in 'active_rules'; each is a pure function of
(requirements, inventory).

Fallback semantics follow the cluster's own defaulting: a PVC without a
storageClassName is fine when the target has a default StorageClass, a
named-but-missing class still binds to that default (WARN), and resources
created by the bundle itself always satisfy their own references.

Author: KubeCompat Team
Date: 2026-10-19
"""

from typing import Callable, List

from kubecompat.core.models import (
    CHECK_INVENTORY,
    CHECK_ORDER,
    IMPLICIT_DEFAULT_ITEM,
    NONE_SPECIFIED_ITEM,
    RequirementKind,
    Result,
    Verdict,
)
from kubecompat.inventory.inventory import Inventory
from kubecompat.manifests.extractor import RequirementSet

Rule = Callable[[RequirementSet, Inventory], List[Verdict]]


class CompatibilityEvaluator:
    """
    Registry of compatibility rules, executed in report order.
    """

    def __init__(self):
        self.active_rules: List[Rule] = [
            self._rule_api_kinds,
            self._rule_storage_classes,
            self._rule_ingress_classes,
            self._rule_namespaces,
            self._rule_service_accounts,
            self._rule_inventory_gaps,
        ]

    def evaluate(self, requirements: RequirementSet, inventory: Inventory) -> List[Verdict]:
        verdicts: List[Verdict] = []
        for rule in self.active_rules:
            verdicts.extend(rule(requirements, inventory))
        return self.normalize(verdicts)

    @staticmethod
    def normalize(verdicts: List[Verdict]) -> List[Verdict]:
        """
        Fixed check order, items sorted within a check, exact duplicates
        collapsed. Emission order of the rules never leaks into the report.
        """
        def sort_key(v: Verdict):
            rank = CHECK_ORDER.index(v.check) if v.check in CHECK_ORDER else len(CHECK_ORDER)
            return (rank, v.check, v.item, v.details)

        return sorted(set(verdicts), key=sort_key)

    # --- Rules ---
    def _rule_api_kinds(self, reqs: RequirementSet, inv: Inventory) -> List[Verdict]:
        check = RequirementKind.API_KIND.value
        verdicts = []
        for gvk in reqs.api_kinds:
            if gvk in inv.supported_gvks:
                verdicts.append(Verdict(check, str(gvk), Result.OK, "Supported on target"))
                continue
            preferred = inv.lookup_group_hint(gvk.group)
            hint = f"Group present; preferred={preferred}" if preferred else "Not found on target"
            verdicts.append(Verdict(check, str(gvk), Result.FAIL, hint))
        return verdicts

    def _rule_storage_classes(self, reqs: RequirementSet, inv: Inventory) -> List[Verdict]:
        check = RequirementKind.STORAGE_CLASS.value
        default = inv.default_storage_class
        verdicts = []

        if reqs.implicit_storage_class:
            if default:
                verdicts.append(Verdict(check, IMPLICIT_DEFAULT_ITEM, Result.OK, f"Target default={default}"))
            else:
                verdicts.append(Verdict(check, IMPLICIT_DEFAULT_ITEM, Result.FAIL,
                                        "No default StorageClass on target"))

        for sc in reqs.storage_classes:
            if sc in inv.storage_classes:
                verdicts.append(Verdict(check, sc, Result.OK, "Exists on target"))
            elif default:
                verdicts.append(Verdict(check, sc, Result.WARN,
                                        f"Missing; target default={default} will be used unless overridden"))
            else:
                verdicts.append(Verdict(check, sc, Result.FAIL, "Missing and no default StorageClass on target"))
        return verdicts

    def _rule_ingress_classes(self, reqs: RequirementSet, inv: Inventory) -> List[Verdict]:
        check = RequirementKind.INGRESS_CLASS.value
        verdicts = []

        if reqs.implicit_ingress_class:
            details = "Relies on controller default; ensure one is set"
            if inv.default_ingress_class:
                details += f" (target default={inv.default_ingress_class})"
            verdicts.append(Verdict(check, NONE_SPECIFIED_ITEM, Result.INFO, details))

        for ic in reqs.ingress_classes:
            if ic in inv.ingress_classes:
                verdicts.append(Verdict(check, ic, Result.OK, "Exists on target"))
            else:
                verdicts.append(Verdict(check, ic, Result.FAIL, "IngressClass not found on target"))
        return verdicts

    def _rule_namespaces(self, reqs: RequirementSet, inv: Inventory) -> List[Verdict]:
        check = RequirementKind.NAMESPACE.value
        verdicts = []
        for req in reqs.of_kind(RequirementKind.NAMESPACE):
            ns = req.item
            if req.self_created:
                verdicts.append(Verdict(check, ns, Result.OK, "Created by manifests"))
            elif ns in inv.namespaces:
                verdicts.append(Verdict(check, ns, Result.OK, "Exists on target"))
            else:
                verdicts.append(Verdict(check, ns, Result.FAIL, "Namespace not present and not created"))
        return verdicts

    def _rule_service_accounts(self, reqs: RequirementSet, inv: Inventory) -> List[Verdict]:
        check = RequirementKind.SERVICE_ACCOUNT.value
        verdicts = []
        for req in reqs.of_kind(RequirementKind.SERVICE_ACCOUNT):
            sa = req.item
            if req.self_created:
                verdicts.append(Verdict(check, str(sa), Result.OK, "Created by manifests"))
            elif inv.service_account_exists(sa):
                verdicts.append(Verdict(check, str(sa), Result.OK, "Exists on target"))
            else:
                verdicts.append(Verdict(check, str(sa), Result.FAIL, "Missing on target and not created"))
        return verdicts

    def _rule_inventory_gaps(self, reqs: RequirementSet, inv: Inventory) -> List[Verdict]:
        """Unknown capabilities are surfaced, never silently read as 'absent'."""
        return [
            Verdict(CHECK_INVENTORY, query, Result.INFO, "Cluster query failed; treated as not present")
            for query in sorted(inv.unavailable)
        ]
