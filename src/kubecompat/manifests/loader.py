#!/usr/bin/env python3
"""
KUBECOMPAT MANIFEST LOADER - The Intake
---------------------------------------
Reads one YAML file or every *.yaml / *.yml beneath a directory (in sorted
order) into a ManifestBundle: an ordered list of parsed documents. The
bundle can also be re-serialised into a single multi-document stream, which
is what the server-side dry-run consumes.

A file that cannot be read or parsed is skipped and recorded on the bundle;
only a path that does not exist at all is an input error.

Author: KubeCompat Team
Date: 2026-10-19
"""

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple

from ruamel.yaml import YAML, YAMLError

from kubecompat.core.errors import ManifestLoadError

logger = logging.getLogger("kubecompat.loader")

MANIFEST_SUFFIXES = (".yaml", ".yml")


@dataclass
class ManifestBundle:
    """
    The parsed manifest set. 'documents' keeps source order; 'sources'
    records which file each document came from (same index). Files that
    could not be read or parsed are kept in 'errors' as (path, reason).
    """
    documents: List[Any] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    errors: List[Tuple[str, str]] = field(default_factory=list)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.documents)

    def __len__(self) -> int:
        return len(self.documents)

    def mappings(self) -> Iterator[Dict[str, Any]]:
        """Only dictionary documents can describe Kubernetes objects."""
        for doc in self.documents:
            if isinstance(doc, dict):
                yield doc

    def to_yaml(self) -> str:
        """
        Serialises the bundle as one multi-document stream with explicit
        '---' separators.
        """
        dumper = YAML(typ="safe", pure=True)
        dumper.default_flow_style = False
        dumper.indent(mapping=2, sequence=4, offset=2)
        dumper.width = 4096

        stream = io.StringIO()
        for i, doc in enumerate(self.mappings()):
            if i > 0:
                stream.write("---\n")
            dumper.dump(doc, stream)
        return stream.getvalue()


class ManifestLoader:
    """Turns a path on disk into a ManifestBundle."""

    def __init__(self):
        self.yaml = YAML(typ="safe")

    def discover(self, path: Path) -> List[Path]:
        if path.is_file():
            return [path]
        # Symlinks are skipped to avoid directory loops
        return sorted(
            f for f in path.rglob("*")
            if f.is_file() and not f.is_symlink() and f.suffix.lower() in MANIFEST_SUFFIXES
        )

    def load(self, path: str) -> ManifestBundle:
        source = Path(path)
        if not source.exists():
            raise ManifestLoadError(str(path), "path does not exist")

        bundle = ManifestBundle()
        files = self.discover(source)
        if not files:
            logger.warning(f"No manifest files found under {source}")

        for file_path in files:
            try:
                docs = self.load_text(self._read(file_path), str(file_path))
            except ManifestLoadError as e:
                # One broken file must not hide the rest of the bundle
                logger.warning(f"Skipping {file_path}: {e.reason}")
                bundle.errors.append((str(file_path), e.reason))
                continue
            for doc in docs:
                bundle.documents.append(doc)
                bundle.sources.append(str(file_path))

        logger.info(f"Loaded {len(bundle)} documents from {len(files)} file(s), {len(bundle.errors)} unreadable")
        return bundle

    def load_text(self, text: str, origin: str = "<string>") -> List[Any]:
        """Parses a multi-document YAML string; empty documents are dropped."""
        try:
            return [doc for doc in self.yaml.load_all(text) if doc is not None]
        except YAMLError as e:
            raise ManifestLoadError(origin, f"invalid YAML: {e}")

    def _read(self, file_path: Path) -> str:
        try:
            # BOM-aware read
            return file_path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestLoadError(str(file_path), str(e))
