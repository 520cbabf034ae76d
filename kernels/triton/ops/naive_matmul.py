from typing import Optional, Tuple

import torch
import triton
import triton.language as tl


@triton.jit
def naive_matmul_kernel(
    a_ptr,
    b_ptr,
    c_ptr,
    K,
    stride_a,
    stride_b,
    stride_c,
    TILE: tl.constexpr,
):
    # grid = (N // TILE, M // TILE); one lane per element of the TILE x TILE output tile.
    pid_n = tl.program_id(0)
    pid_m = tl.program_id(1)
    rows = pid_m * TILE + tl.arange(0, TILE)
    cols = pid_n * TILE + tl.arange(0, TILE)

    # Each lane walks the whole K extent straight from main memory; no
    # operand element is shared between lanes.
    acc = tl.zeros((TILE, TILE), dtype=tl.float32)
    for k in range(0, K):
        a = tl.load(a_ptr + rows * stride_a + k)
        b = tl.load(b_ptr + k * stride_b + cols)
        acc += a[:, None] * b[None, :]

    c_ptrs = c_ptr + rows[:, None] * stride_c + cols[None, :]
    tl.store(c_ptrs, acc)


def launch_naive_matmul(
    A: torch.Tensor,
    B: torch.Tensor,
    C: torch.Tensor,
    *,
    tile: int,
    grid: Optional[Tuple[int, int]] = None,
) -> None:
    """Launch over row-major operands (unit column stride); shapes must be multiples of `tile`."""
    m, k = A.shape
    n = B.shape[1]
    if grid is None:
        grid = (n // tile, m // tile)
    naive_matmul_kernel[grid](
        A,
        B,
        C,
        k,
        A.stride(0),
        B.stride(0),
        C.stride(0),
        TILE=tile,
    )


def naive_matmul(A: torch.Tensor, B: torch.Tensor, *, tile: int = 4) -> torch.Tensor:
    if A.dtype != torch.float32 or B.dtype != torch.float32:
        raise TypeError("naive_matmul expects float32 tensors")
    if A.ndim != 2 or B.ndim != 2:
        raise ValueError("naive_matmul expects rank-2 tensors")
    m, k = A.shape
    k2, n = B.shape
    if k2 != k:
        raise ValueError(f"shape mismatch: A={tuple(A.shape)} B={tuple(B.shape)}")
    if m % tile or n % tile:
        raise ValueError(f"M={m} and N={n} must be multiples of tile={tile}")
    A = A.contiguous()
    B = B.contiguous()
    C = torch.empty((m, n), device=A.device, dtype=torch.float32)
    launch_naive_matmul(A, B, C, tile=tile)
    return C


__all__ = ["naive_matmul_kernel", "launch_naive_matmul", "naive_matmul"]
