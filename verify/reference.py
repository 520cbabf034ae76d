"""
Single-threaded reference multiplication used to validate kernel output.

Accumulates in float32 in increasing k order, the same order the direct
kernel uses, so integer-valued operands give bit-identical results.
"""

from __future__ import annotations

import numpy as np
import torch

from tiled_matmul.errors import MatrixResidencyError
from tiled_matmul.matrix import Matrix, Residency, check_multiply_shapes


def multiply_host(a: Matrix, b: Matrix, c: Matrix) -> None:
    for name, m in (("A", a), ("B", b), ("C", c)):
        if m.residency is not Residency.HOST:
            raise MatrixResidencyError(f"multiply_host: {name} must be host-resident, got {m.residency.value}")
    check_multiply_shapes(a, b, c)

    A = a.to_tensor().numpy()
    B = b.to_tensor().numpy()
    acc = np.zeros((a.height, b.width), dtype=np.float32)
    for k in range(a.width):
        acc += A[:, k : k + 1] * B[k : k + 1, :]
    c.to_tensor().copy_(torch.from_numpy(acc))


__all__ = ["multiply_host"]
