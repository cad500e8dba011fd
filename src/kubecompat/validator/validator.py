#!/usr/bin/env python3
"""
KUBECOMPAT VALIDATOR - The Judge
--------------------------------
The authoritative second layer of the compatibility check. The whole bundle
is submitted once to the target API server with a server-side dry-run, so
admission webhooks, CRD schemas and cross-object validation all get a say.
Nothing is persisted.

This pass runs independently of the heuristic per-requirement rules and is
never parallelised: the server validates objects in submission order.

Author: KubeCompat Team
Date: 2026-10-19
"""

import logging
import re
from typing import Any, List

from kubecompat.core.config import DEFAULT_DRY_RUN_ERROR_PATTERN
from kubecompat.core.errors import ValidationUnavailable
from kubecompat.core.models import BUNDLE_ITEM, CHECK_SERVER_DRY_RUN, Result, Verdict
from kubecompat.manifests.loader import ManifestBundle

logger = logging.getLogger("kubecompat.validator")


class ServerValidator:
    """
    Turns the dry-run outcome into verdicts. Rejections are reported
    verbatim (trimmed, de-duplicated, sorted) and never downgraded.
    """

    def __init__(self, cluster: Any, error_pattern: str = DEFAULT_DRY_RUN_ERROR_PATTERN):
        self.cluster = cluster
        self.error_pattern = re.compile(error_pattern)

    def error_lines(self, stderr: str) -> List[str]:
        """
        Keeps the lines that look like errors. If none match, every non-empty
        line is kept so a rejection is never reported without details.
        """
        lines = {line.strip() for line in stderr.splitlines() if line.strip()}
        matched = {line for line in lines if self.error_pattern.search(line)}
        return sorted(matched or lines)

    def validate(self, bundle: ManifestBundle) -> List[Verdict]:
        if next(bundle.mappings(), None) is None:
            return [Verdict(CHECK_SERVER_DRY_RUN, BUNDLE_ITEM, Result.INFO, "No objects to validate")]

        try:
            accepted, stderr = self.cluster.dry_run(bundle.to_yaml())
        except ValidationUnavailable as e:
            logger.warning(f"Server-side dry-run skipped: {e}")
            return [Verdict(CHECK_SERVER_DRY_RUN, BUNDLE_ITEM, Result.INFO, f"Dry-run unavailable: {e}")]

        if accepted:
            return [Verdict(CHECK_SERVER_DRY_RUN, BUNDLE_ITEM, Result.OK,
                            "API server accepted all objects (dry-run)")]

        lines = self.error_lines(stderr)
        logger.info(f"Server-side dry-run rejected the bundle with {len(lines)} distinct error(s)")
        if not lines:
            return [Verdict(CHECK_SERVER_DRY_RUN, BUNDLE_ITEM, Result.FAIL,
                            "Dry-run failed without diagnostics")]
        return [Verdict(CHECK_SERVER_DRY_RUN, BUNDLE_ITEM, Result.FAIL, line) for line in lines]
