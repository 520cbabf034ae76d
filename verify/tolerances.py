"""
Element-wise comparison of host matrices.

`equal` is the strict absolute-difference check used for exact (integer
valued) operands. `close` adds a relative term for random float operands,
where GPU and CPU accumulation (FMA contraction, reduction order) can round
dot-products differently.
"""

from __future__ import annotations

from dataclasses import dataclass

import torch

from tiled_matmul.errors import MatrixResidencyError
from tiled_matmul.matrix import Matrix, Residency


@dataclass(frozen=True)
class Tolerances:
    atol: float
    rtol: float


# Integer-valued operands below 2**24 multiply exactly in float32.
EXACT_TOLERANCE = 1e-10

# Accumulation-heavy f32 ops; keep looser than elementwise defaults to avoid
# false negatives on random data.
MATMUL_F32 = Tolerances(atol=2e-2, rtol=2e-2)


def _host_pair(a: Matrix, b: Matrix):
    for m in (a, b):
        if m.residency is not Residency.HOST:
            raise MatrixResidencyError(f"comparison needs host-resident matrices, got {m.residency.value}")
    return a.to_tensor(), b.to_tensor()


def equal(a: Matrix, b: Matrix, tolerance: float = EXACT_TOLERANCE) -> bool:
    """
    True when shapes match and every element pair is within `tolerance`.

    Identical elements always match, so a matrix equals itself even when it
    holds NaN or inf; NaN against a finite value is a mismatch.
    """
    if a.shape != b.shape:
        return False
    ta, tb = _host_pair(a, b)
    if ta.numel() == 0:
        return True
    same = (ta == tb) | (torch.isnan(ta) & torch.isnan(tb))
    within = (ta - tb).abs() <= float(tolerance)
    return bool((same | within).all().item())


def close(a: Matrix, b: Matrix, tol: Tolerances = MATMUL_F32) -> bool:
    if a.shape != b.shape:
        return False
    ta, tb = _host_pair(a, b)
    return bool(torch.allclose(ta, tb, rtol=tol.rtol, atol=tol.atol))


def max_abs_err(a: Matrix, b: Matrix) -> float:
    ta, tb = _host_pair(a, b)
    if ta.shape != tb.shape:
        raise ValueError(f"shape mismatch: {tuple(ta.shape)} vs {tuple(tb.shape)}")
    if ta.numel() == 0:
        return 0.0
    return float((ta - tb).abs().max().item())


__all__ = ["Tolerances", "EXACT_TOLERANCE", "MATMUL_F32", "equal", "close", "max_abs_err"]
