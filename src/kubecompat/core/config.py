#!/usr/bin/env python3
"""
KUBECOMPAT CONFIGURATION
------------------------
Tunable defaults for the assessment engine. Values can be overridden from a
YAML file (loaded with ruamel.yaml) and then from CLI flags.

Author: KubeCompat Team
Date: 2026-10-19
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional

from ruamel.yaml import YAML, YAMLError

from kubecompat.core.errors import InputError

logger = logging.getLogger("kubecompat.config")

# Resources every migration target is expected to serve ("<plural>.<group>")
DEFAULT_MUST_HAVE_RESOURCES = [
    "deployments.apps",
    "statefulsets.apps",
    "daemonsets.apps",
    "jobs.batch",
    "cronjobs.batch",
    "ingresses.networking.k8s.io",
]

DEFAULT_CNI_PATTERNS = ["calico", "cilium", "weave", "flannel", "canal", "antrea", "ovn"]

# Keep "no matches for kind" and validation errors, drop noisy warnings
DEFAULT_DRY_RUN_ERROR_PATTERN = r"error|no matches for|validation|Invalid|not found"


@dataclass
class AssessmentConfig:
    """Runtime settings shared by the check, collect and compare flows."""
    context: Optional[str] = None
    kubectl: str = "kubectl"
    max_workers: int = 4
    dry_run: bool = True
    must_have_resources: List[str] = field(default_factory=lambda: list(DEFAULT_MUST_HAVE_RESOURCES))
    cni_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_CNI_PATTERNS))
    quota_namespaces: List[str] = field(default_factory=lambda: ["default", "kube-system"])
    crd_sample_size: int = 15
    dry_run_error_pattern: str = DEFAULT_DRY_RUN_ERROR_PATTERN

    @classmethod
    def from_file(cls, path: str) -> "AssessmentConfig":
        """
        Loads overrides from a YAML mapping. Unknown keys are ignored with a
        warning so older config files keep working.
        """
        config_path = Path(path)
        try:
            data = YAML(typ="safe").load(config_path.read_text(encoding="utf-8-sig"))
        except (OSError, YAMLError) as e:
            raise InputError(f"Unable to read config {config_path}: {e}")

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise InputError(f"Config {config_path} must be a YAML mapping")

        known = {f.name for f in fields(cls)}
        overrides = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key '{key}' in {config_path}")
                continue
            overrides[key] = value
        return cls(**overrides)

    def merged(self, **overrides) -> "AssessmentConfig":
        """Returns a copy with every non-None override applied."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return AssessmentConfig(**values)
