"""
Deterministic operands and shape cases for kernel validation.

Generators return host-resident matrices. Integer-valued generators keep
every partial sum exact in float32, so kernel output can be compared with
the reference at EXACT_TOLERANCE regardless of accumulation order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import torch

from tiled_matmul.matrix import Matrix, create_host, from_tensor


@dataclass(frozen=True)
class MatmulCase:
    m: int
    k: int
    n: int
    seed: int = 0

    @property
    def name(self) -> str:
        return f"{self.m}x{self.k}x{self.n}"


# Tile counts per dimension: one tile, two tiles, many tiles.
TILE_COUNTS = (1, 2, 5)


def antidiagonal_identity(n: int) -> Matrix:
    """X[r, c] = 1 iff r + c == n - 1; X is its own inverse and X @ Y reverses Y's rows."""
    x = create_host(n, n)
    x.to_tensor().copy_(torch.eye(n, dtype=torch.float32).flip(1))
    return x


def ramp(height: int, width: int) -> Matrix:
    """Y[r, c] = r * width + c."""
    t = torch.arange(height * width, dtype=torch.float32).reshape(height, width)
    return from_tensor(t)


def random_integers(height: int, width: int, *, seed: int = 0, low: int = -4, high: int = 5) -> Matrix:
    g = torch.Generator().manual_seed(int(seed))
    t = torch.randint(low, high, (height, width), generator=g).to(torch.float32)
    return from_tensor(t)


def random_floats(height: int, width: int, *, seed: int = 0) -> Matrix:
    g = torch.Generator().manual_seed(int(seed))
    return from_tensor(torch.randn((height, width), generator=g, dtype=torch.float32))


def zeros(height: int, width: int) -> Matrix:
    return create_host(height, width)


def generate_cases(tile_size: int, tile_counts: Sequence[int] = TILE_COUNTS, *, seed: int = 0) -> List[MatmulCase]:
    """
    Shape cases covering 1, 2 and many tiles along each of M, K, N.

    Every case keeps the other two dimensions at the middle count so the
    grid and the K loop are exercised independently; a square case with the
    largest count closes the list.
    """
    t = int(tile_size)
    counts = list(tile_counts)
    mid = counts[len(counts) // 2]
    cases: List[MatmulCase] = []
    seen = set()
    for cnt in counts:
        for m, k, n in ((cnt, mid, mid), (mid, cnt, mid), (mid, mid, cnt)):
            key = (m * t, k * t, n * t)
            if key in seen:
                continue
            seen.add(key)
            cases.append(MatmulCase(m=key[0], k=key[1], n=key[2], seed=seed + len(cases)))
    big = max(counts) * t
    if (big, big, big) not in seen:
        cases.append(MatmulCase(m=big, k=big, n=big, seed=seed + len(cases)))
    return cases


__all__ = [
    "MatmulCase",
    "TILE_COUNTS",
    "antidiagonal_identity",
    "ramp",
    "random_integers",
    "random_floats",
    "zeros",
    "generate_cases",
]
