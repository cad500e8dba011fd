#!/usr/bin/env python3
"""
KUBECOMPAT FACT MODEL - The Snapshot
------------------------------------
A flat, immutable mapping of dotted keys (e.g. 'storage.default') to string
values describing one cluster. List-valued facts are stored as sorted,
';'-joined sets so two snapshots can be compared by plain string equality
or decoded and compared as sets.

On disk a Fact Model is one 'key=value' pair per line.

Author: KubeCompat Team
Date: 2026-10-19
"""

import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from kubecompat.core.errors import FactFormatError

LIST_DELIMITER = ";"

# No separator or whitespace; a leading "#" would read back as a comment
_KEY_PATTERN = re.compile(r"^[^#=\s\ufeff][^=\s]*$")

# Everything str.splitlines() treats as a line boundary
_LINE_BREAKS = re.compile(r"[\n\r\x0b\x0c\x1c\x1d\x1e\x85\u2028\u2029]")


def sanitize_value(value: str) -> str:
    """Multi-line values are flattened to a single line."""
    return _LINE_BREAKS.sub(" ", str(value))


def encode_list(items: Iterable[str]) -> str:
    """
    Encodes items as a sorted, de-duplicated, ';'-joined set.
    Items carrying the delimiter are rejected; they could not be decoded back.
    """
    clean = set()
    for item in items:
        item = sanitize_value(item)
        if LIST_DELIMITER in item:
            raise FactFormatError(f"List item '{item}' contains the delimiter '{LIST_DELIMITER}'")
        if item:
            clean.add(item)
    return LIST_DELIMITER.join(sorted(clean))


def decode_list(value: Optional[str]) -> List[str]:
    """Inverse of encode_list: empty fragments are dropped, output sorted."""
    if not value:
        return []
    return sorted({part for part in value.split(LIST_DELIMITER) if part})


def missing_items(superset: Optional[str], subset: Optional[str]) -> List[str]:
    """Items of 'subset' absent from 'superset' (both encoded lists)."""
    return sorted(set(decode_list(subset)) - set(decode_list(superset)))


def is_superset(superset: Optional[str], subset: Optional[str]) -> bool:
    return not missing_items(superset, subset)


class FactModel(Mapping[str, str]):
    """
    Immutable key -> value snapshot of one cluster (or manifest set).
    """

    def __init__(self, facts: Optional[Mapping[str, str]] = None):
        self._facts: Dict[str, str] = {}
        for key, value in (facts or {}).items():
            self._validate_key(key)
            self._facts[key] = sanitize_value(value)

    @staticmethod
    def _validate_key(key: str):
        if not isinstance(key, str) or not _KEY_PATTERN.match(key):
            raise FactFormatError(f"Invalid fact key: {key!r}")

    # --- Mapping protocol ---
    def __getitem__(self, key: str) -> str:
        return self._facts[key]

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._facts))

    def __len__(self) -> int:
        return len(self._facts)

    def __repr__(self) -> str:
        return f"FactModel({len(self._facts)} facts)"

    def get_list(self, key: str) -> List[str]:
        return decode_list(self._facts.get(key))

    def with_fact(self, key: str, value: str) -> "FactModel":
        """Returns a new model with one fact added or replaced."""
        merged = dict(self._facts)
        merged[key] = value
        return FactModel(merged)

    # --- Flat file format ---
    def dumps(self) -> str:
        return "".join(f"{key}={self._facts[key]}\n" for key in sorted(self._facts))

    @classmethod
    def loads(cls, text: str) -> "FactModel":
        facts = {}
        for line_no, line in enumerate(text.lstrip("\ufeff").splitlines(), 1):
            if not line.strip() or line.lstrip().startswith("#"):
                continue
            key, sep, value = line.partition("=")
            key = key.strip()
            if not sep or not key:
                raise FactFormatError(f"Line {line_no}: expected 'key=value', got {line!r}")
            facts[key] = value
        return cls(facts)

    def write(self, path: str):
        try:
            Path(path).write_text(self.dumps(), encoding="utf-8")
        except OSError as e:
            raise FactFormatError(f"Unable to write fact file {path}: {e}")

    @classmethod
    def read(cls, path: str) -> "FactModel":
        try:
            text = Path(path).read_text(encoding="utf-8-sig")
        except OSError as e:
            raise FactFormatError(f"Unable to read fact file {path}: {e}")
        return cls.loads(text)
