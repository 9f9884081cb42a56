"""Output helpers for simrepl commands."""

from __future__ import annotations

import json
import math
from typing import Any, Mapping, TextIO


def num_digits(n: int) -> int:
    """Number of decimal digits of a non-negative integer (1 for zero)."""
    if n <= 0:
        return 1
    return int(math.log10(n)) + 1


def format_memory(num_bytes: int) -> str:
    return f"{num_bytes / 1024.0:.1f}kB"


def json_line(payload: Any) -> str:
    return json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str)


def write_mapping(out: TextIO, mapping: Mapping[str, Any], *, indent: int = 0) -> None:
    """Pretty-print a nested mapping as aligned ``key: value`` lines."""
    if not mapping:
        out.write(f"{' ' * indent}(empty)\n")
        return
    width = max(len(str(key)) for key in mapping)
    pad = " " * indent
    for key, value in mapping.items():
        if isinstance(value, Mapping):
            out.write(f"{pad}{key}:\n")
            write_mapping(out, value, indent=indent + 2)
        elif isinstance(value, (list, tuple)):
            rendered = ", ".join(str(item) for item in value)
            out.write(f"{pad}{str(key):<{width}} : [{rendered}]\n")
        else:
            out.write(f"{pad}{str(key):<{width}} : {value}\n")


__all__ = ["format_memory", "json_line", "num_digits", "write_mapping"]
