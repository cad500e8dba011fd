#!/usr/bin/env python3
"""
KUBECOMPAT ERRORS
-----------------
Exception taxonomy. Most of these never escape an evaluation: the inventory
and validator layers catch them and degrade to 'capability unknown'. Only
input errors reach the CLI boundary.

Author: KubeCompat Team
Date: 2026-10-19
"""

from typing import Optional


class KubeCompatError(Exception):
    """Base class for all KubeCompat failures."""


class InputError(KubeCompatError):
    """Malformed or unreadable user input."""


class ManifestLoadError(InputError):
    """A manifest file or directory could not be read or parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load manifests from {path}: {reason}")


class FactFormatError(InputError):
    """A fact file or fact value violates the flat key=value format."""


class InventoryUnavailable(KubeCompatError):
    """A cluster query failed (network, auth, RBAC-denied)."""

    def __init__(self, query: str, reason: str, status: Optional[int] = None):
        self.query = query
        self.reason = reason
        self.status = status
        super().__init__(f"Cluster query '{query}' failed: {reason}")


class ResourceNotFound(InventoryUnavailable):
    """The API server answered 404 for a single-object lookup."""

    def __init__(self, query: str, reason: str = "not found"):
        super().__init__(query, reason, status=404)


class ValidationUnavailable(KubeCompatError):
    """The server-side dry-run could not be executed at all."""
