#!/usr/bin/env python3
"""
KUBECOMPAT ENGINE - The High Orchestrator
-----------------------------------------
The AssessmentEngine wires the three KubeCompat flows together:

1. check   : manifests -> requirements -> target inventory -> verdicts
             (+ the authoritative server-side dry-run)
2. collect : live cluster -> FactModel -> fact file
3. compare : two fact files -> FactDiffer -> diff rows

No flow aborts on a partial cluster failure; every gap ends up as a row.

Author: KubeCompat Team
Date: 2026-10-19
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Union

from kubecompat.core.config import AssessmentConfig
from kubecompat.core.models import CHECK_MANIFEST, Assessment, DiffRow, RequirementKind, Result, Verdict
from kubecompat.facts.collector import FactCollector
from kubecompat.facts.differ import FactDiffer
from kubecompat.facts.model import FactModel
from kubecompat.inventory.cluster import ClusterClient
from kubecompat.inventory.inventory import CapabilityInventory
from kubecompat.manifests.extractor import RequirementExtractor
from kubecompat.manifests.loader import ManifestBundle, ManifestLoader
from kubecompat.rules.evaluator import CompatibilityEvaluator
from kubecompat.validator.validator import ServerValidator

logger = logging.getLogger("kubecompat.engine")

Row = Union[Verdict, DiffRow]


class AssessmentEngine:
    """
    Principal orchestrator. The cluster client is created lazily so the
    compare flow never needs cluster access.
    """

    def __init__(self, config: Optional[AssessmentConfig] = None, cluster: Any = None):
        self.config = config or AssessmentConfig()
        self._cluster = cluster

        self.loader = ManifestLoader()
        self.extractor = RequirementExtractor()
        self.evaluator = CompatibilityEvaluator()
        self.differ = FactDiffer(self.config)

    @property
    def cluster(self) -> Any:
        if self._cluster is None:
            logger.info(f"Connecting to cluster (context={self.config.context or 'current'})")
            self._cluster = ClusterClient(context=self.config.context, kubectl=self.config.kubectl)
        return self._cluster

    # --- check ---
    def check_manifests(self, path: str) -> List[Verdict]:
        """Loads manifests from disk and assesses them against the target."""
        return self.check_bundle(self.loader.load(path))

    def check_bundle(self, bundle: ManifestBundle) -> List[Verdict]:
        # Phase 1: Requirements (pure)
        requirements = self.extractor.extract(bundle)
        logger.info(f"Extracted {len(requirements.requirements())} requirements from {len(bundle)} documents")

        # Phase 2: Inventory (only SAs not created by the bundle need probing)
        to_probe = [
            req.item for req in requirements.of_kind(RequirementKind.SERVICE_ACCOUNT) if not req.self_created
        ]
        inventory = CapabilityInventory(self.cluster, max_workers=self.config.max_workers).build(to_probe)

        # Phase 3: Heuristic rules, plus one row per file that could not be loaded
        verdicts = self.evaluator.evaluate(requirements, inventory) + self.load_failures(bundle)

        # Phase 4: Authoritative dry-run, a second independent layer
        if self.config.dry_run:
            validator = ServerValidator(self.cluster, self.config.dry_run_error_pattern)
            verdicts = verdicts + validator.validate(bundle)

        return self.evaluator.normalize(verdicts)

    @staticmethod
    def load_failures(bundle: ManifestBundle) -> List[Verdict]:
        return [
            Verdict(CHECK_MANIFEST, path, Result.FAIL, " ".join(reason.split()))
            for path, reason in bundle.errors
        ]

    # --- collect ---
    def collect_facts(self, output_path: Optional[str] = None) -> FactModel:
        facts = FactCollector(self.cluster, self.config).collect()
        if output_path:
            facts.write(output_path)
            logger.info(f"Wrote {len(facts)} facts to {output_path}")
        return facts

    # --- compare ---
    def compare_facts(self, source_path: str, target_path: str) -> List[DiffRow]:
        return self.differ.compare(FactModel.read(source_path), FactModel.read(target_path))

    # --- Reporting helpers ---
    @staticmethod
    def has_failures(rows: Sequence[Row]) -> bool:
        return any(AssessmentEngine._outcome(r) == "FAIL" for r in rows)

    def exit_code(self, rows: Sequence[Row]) -> int:
        """0 when nothing failed, 1 when at least one FAIL row exists."""
        return 1 if self.has_failures(rows) else 0

    def generate_summary(self, rows: Sequence[Row]) -> Dict[str, Any]:
        """Counts per outcome, in the order the report shows them."""
        order = [r.value for r in Result] + [Assessment.SAME.value, Assessment.DIFF.value]
        counts = {key: 0 for key in order}
        for row in rows:
            counts[self._outcome(row)] = counts.get(self._outcome(row), 0) + 1
        return {
            "total_rows": len(rows),
            "counts": {k: v for k, v in counts.items() if v or k in ("OK", "WARN", "FAIL")},
            "failed": self.has_failures(rows),
            "summary_timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
        }

    @staticmethod
    def _outcome(row: Row) -> str:
        return row.result.value if isinstance(row, Verdict) else row.assessment.value
