#!/usr/bin/env python3
"""
KUBECOMPAT FACT DIFFER - The Comparator
---------------------------------------
Compares a source and a target FactModel. A fixed set of named assessments
(API surface, capacity, storage, network stack, add-ons, policy) reduce
related facts to one summary row each; every remaining key is reported as
a raw SAME/DIFF row by plain string equality.

Keys missing on one side are rendered empty and reported as DIFF.

Author: KubeCompat Team
Date: 2026-10-19
"""

import logging
from typing import Callable, List, Optional, Tuple

from kubecompat.core.config import AssessmentConfig
from kubecompat.core.models import Assessment, DiffRow
from kubecompat.facts.model import FactModel, decode_list, encode_list, is_superset, missing_items

logger = logging.getLogger("kubecompat.differ")

SUMMARY_PREFIX = "__SUMMARY."

Outcome = Tuple[Assessment, str]


def summary_key(name: str) -> str:
    return f"{SUMMARY_PREFIX}{name}__"


def _as_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


class FactDiffer:
    """
    Source is 'A' (where workloads run today), target is 'B' (where they
    are going). Every assessment asks whether B can host what A hosts.
    """

    def __init__(self, config: Optional[AssessmentConfig] = None):
        self.config = config or AssessmentConfig()
        self.assessments: List[Tuple[str, Callable[[FactModel, FactModel], Outcome]]] = [
            ("API_SURFACE", self.assess_api_surface),
            ("CAPACITY", self.assess_capacity),
            ("STORAGE", self.assess_storage),
            ("NETWORK_STACK", self.assess_network_stack),
            ("ADDONS", self.assess_addons),
            ("POLICY", self.assess_policies),
        ]

    def compare(self, source: FactModel, target: FactModel) -> List[DiffRow]:
        rows = []
        for name, assess in self.assessments:
            result, notes = assess(source, target)
            logger.debug(f"{name}: {result.value} ({notes})")
            rows.append(DiffRow(summary_key(name), "", "", result, notes))
        rows.extend(self.raw_rows(source, target))
        logger.info(f"Compared {len(source)} source and {len(target)} target facts")
        return rows

    def raw_rows(self, source: FactModel, target: FactModel) -> List[DiffRow]:
        rows = []
        for key in sorted(set(source) | set(target)):
            if key.startswith(SUMMARY_PREFIX):
                continue
            a, b = source.get(key, ""), target.get(key, "")
            notes = ""
            if key not in source:
                notes = "missing on source"
            elif key not in target:
                notes = "missing on target"
            rows.append(DiffRow(key, a, b, Assessment.SAME if a == b and not notes else Assessment.DIFF, notes))
        return rows

    # --- Named assessments ---
    def assess_api_surface(self, a: FactModel, b: FactModel) -> Outcome:
        notes = []
        lacking = missing_items(b.get("apis.preferred"), a.get("apis.preferred"))
        if lacking:
            notes.append(f"target lacks preferred API group/versions: {', '.join(lacking)}")
        for resource in self.config.must_have_resources:
            key = f"apis.resource.{resource}"
            if a.get(key) == "present" and b.get(key) != "present":
                notes.append(f"target missing {resource}")
        if notes:
            return Assessment.FAIL, "; ".join(notes)
        return Assessment.OK, "compatible API surface"

    def assess_capacity(self, a: FactModel, b: FactModel) -> Outcome:
        regressions, advisories = [], []
        for label, key in (("CPU", "capacity.cpu_milli"), ("MEM", "capacity.mem_bytes")):
            src, dst = _as_int(a.get(key, "0")), _as_int(b.get(key, "0"))
            if src is None or dst is None:
                advisories.append(f"{label} value not numeric; treated as 0")
                src, dst = src or 0, dst or 0
            if dst < src:
                regressions.append(f"{label} target<source ({dst}<{src})")
        if regressions:
            return Assessment.FAIL, "; ".join(regressions + advisories)
        if advisories:
            return Assessment.OK, "; ".join(["target >= source capacity"] + advisories)
        return Assessment.OK, "target >= source capacity"

    def assess_storage(self, a: FactModel, b: FactModel) -> Outcome:
        # Name may differ; only the presence of a default matters
        if a.get("storage.default") and not b.get("storage.default"):
            return Assessment.WARN, "target has no default StorageClass"
        return Assessment.OK, "storage defaults present"

    def assess_network_stack(self, a: FactModel, b: FactModel) -> Outcome:
        notes = []
        cni_a, cni_b = a.get("network.cni.guess", "unknown"), b.get("network.cni.guess", "unknown")
        if cni_a != cni_b:
            notes.append(f"CNI differs ({cni_a} vs {cni_b})")
        if not is_superset(b.get("ingress.controllers"), a.get("ingress.controllers")):
            lacking = missing_items(b.get("ingress.controllers"), a.get("ingress.controllers"))
            notes.append(f"Ingress controllers differ (target lacks {', '.join(lacking)})")
        if notes:
            return Assessment.WARN, "; ".join(notes)
        return Assessment.OK, "network stack comparable"

    def assess_addons(self, a: FactModel, b: FactModel) -> Outcome:
        """Compares add-on names only; image tags are ignored."""
        names_a = self._addon_names(a.get("addons.kubesystem"))
        names_b = self._addon_names(b.get("addons.kubesystem"))
        lacking = missing_items(names_b, names_a)
        if lacking:
            return Assessment.WARN, f"target lacks some add-ons present on source: {', '.join(lacking)}"
        return Assessment.OK, "target has superset of kube-system add-ons"

    def assess_policies(self, a: FactModel, b: FactModel) -> Outcome:
        notes = []
        if a.get("policy.podSecurity.defaultNS", "none") != b.get("policy.podSecurity.defaultNS", "none"):
            notes.append("PSA labels differ (default ns)")
        val_a = _as_int(a.get("admission.validatingwebhooks.count", "0")) or 0
        val_b = _as_int(b.get("admission.validatingwebhooks.count", "0")) or 0
        if val_b < val_a:
            notes.append(f"fewer validating webhooks on target ({val_b}<{val_a}); advisory, webhook sets vary per platform")
        if notes:
            return Assessment.WARN, "; ".join(notes)
        return Assessment.OK, "policy posture comparable"

    @staticmethod
    def _addon_names(value: Optional[str]) -> str:
        return encode_list(item.split("=", 1)[0] for item in decode_list(value))
