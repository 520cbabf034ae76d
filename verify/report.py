"""
Plain-text dump of host matrices for diagnostics.
"""

from __future__ import annotations

import sys
from typing import List, Optional, TextIO

from tiled_matmul.matrix import Matrix, get_element


def format_matrix(m: Matrix, label: str, *, precision: int = 3) -> str:
    lines: List[str] = [f"{label} ({m.height}x{m.width}, stride={m.stride}):"]
    for r in range(m.height):
        row = " ".join(f"{get_element(m, r, c):{precision + 6}.{precision}f}" for c in range(m.width))
        lines.append(f"  {row}")
    return "\n".join(lines)


def print_matrix(m: Matrix, label: str, *, file: Optional[TextIO] = None, precision: int = 3) -> None:
    print(format_matrix(m, label, precision=precision), file=file or sys.stdout)


__all__ = ["format_matrix", "print_matrix"]
