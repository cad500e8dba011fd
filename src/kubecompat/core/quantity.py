"""Kubernetes resource quantity parsing (CPU to millicores, memory to bytes)."""

from typing import Any

_CPU_SUFFIXES = {
    "n": 1e-6,
    "u": 1e-3,
    "m": 1,
}

_MEM_SUFFIXES = {
    "Ki": 1024, "Mi": 1024**2, "Gi": 1024**3, "Ti": 1024**4, "Pi": 1024**5, "Ei": 1024**6,
    "k": 1000, "K": 1000, "M": 1000**2, "G": 1000**3, "T": 1000**4, "P": 1000**5, "E": 1000**6,
}


def parse_cpu_milli(value: Any) -> int:
    """'250m' -> 250, '4' -> 4000, '1.5' -> 1500. Unparseable values count as 0."""
    s = str(value or "").strip()
    if not s:
        return 0
    try:
        for suffix, factor in _CPU_SUFFIXES.items():
            if s.endswith(suffix):
                return int(round(float(s[:-1]) * factor))
        return int(round(float(s) * 1000))
    except ValueError:
        return 0


def parse_memory_bytes(value: Any) -> int:
    """'16Gi' -> 17179869184, '512M' -> 512000000. Unparseable values count as 0."""
    s = str(value or "").strip()
    if not s:
        return 0
    try:
        # Two-letter binary suffixes first so 'Mi' is not read as 'M'
        for suffix, multiplier in sorted(_MEM_SUFFIXES.items(), key=lambda x: -len(x[0])):
            if s.endswith(suffix):
                return int(float(s[: -len(suffix)]) * multiplier)
        return int(float(s))
    except ValueError:
        return 0
