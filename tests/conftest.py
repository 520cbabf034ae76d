from __future__ import annotations

import os
import sys
from pathlib import Path

# Ensure repo root is importable for all tests, regardless of nested test layout.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

try:
    import torch
except Exception:
    torch = None


def _cuda_available() -> bool:
    if torch is None:
        return False
    try:
        return bool(torch.cuda.is_available())
    except Exception:
        return False


# triton.jit picks interpreter vs compiler when the kernel modules are imported,
# so the switch has to be in place before any test module imports them.
if not _cuda_available():
    os.environ.setdefault("TRITON_INTERPRET", "1")
