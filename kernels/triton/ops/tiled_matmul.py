from typing import Optional, Tuple

import torch
import triton
import triton.language as tl


@triton.jit
def stage_tiles(a_sub, stride_a, b_sub, stride_b, TILE: tl.constexpr):
    """
    Stage one A tile and one B tile into the group's scratch.

    The scratch pair (2 * TILE * TILE floats) is shared by every lane of the
    program and follows a two-phase protocol:
      drain:  barrier, so no lane is still reading the previous tiles;
      refill: each lane copies its (r, c) element of both tiles, then barrier,
              so the full tiles are resident before any lane reads a neighbour.
    Dropping either barrier is a race on the scratch.
    """
    r = tl.arange(0, TILE)
    c = tl.arange(0, TILE)
    tl.debug_barrier()
    a_s = tl.load(a_sub + r[:, None] * stride_a + c[None, :])
    b_s = tl.load(b_sub + r[:, None] * stride_b + c[None, :])
    tl.debug_barrier()
    return a_s, b_s


@triton.jit
def tiled_matmul_kernel(
    a_ptr,
    b_ptr,
    c_ptr,
    K,
    stride_a,
    stride_b,
    stride_c,
    TILE: tl.constexpr,
):
    # One program per TILE x TILE output tile (R, C); lane (r, c) owns C[R*T + r, C*T + c].
    pid_n = tl.program_id(0)
    pid_m = tl.program_id(1)
    r = tl.arange(0, TILE)
    c = tl.arange(0, TILE)

    acc = tl.zeros((TILE, TILE), dtype=tl.float32)
    for kt in range(0, K // TILE):
        # Sub-view arithmetic: tile (R, kt) of A and tile (kt, C) of B.
        a_sub = a_ptr + pid_m * TILE * stride_a + kt * TILE
        b_sub = b_ptr + kt * TILE * stride_b + pid_n * TILE
        a_s, b_s = stage_tiles(a_sub, stride_a, b_sub, stride_b, TILE)
        acc += tl.sum(a_s[:, :, None] * b_s[None, :, :], axis=1)

    # Write targets are disjoint per lane, no barrier needed.
    c_sub = c_ptr + pid_m * TILE * stride_c + pid_n * TILE
    tl.store(c_sub + r[:, None] * stride_c + c[None, :], acc)


def launch_tiled_matmul(
    A: torch.Tensor,
    B: torch.Tensor,
    C: torch.Tensor,
    *,
    tile: int,
    grid: Optional[Tuple[int, int]] = None,
) -> None:
    """Same contract as `launch_naive_matmul`; K must also be a multiple of `tile`."""
    m, k = A.shape
    n = B.shape[1]
    if grid is None:
        grid = (n // tile, m // tile)
    tiled_matmul_kernel[grid](
        A,
        B,
        C,
        k,
        A.stride(0),
        B.stride(0),
        C.stride(0),
        TILE=tile,
    )


def tiled_matmul(A: torch.Tensor, B: torch.Tensor, *, tile: int = 4) -> torch.Tensor:
    if A.dtype != torch.float32 or B.dtype != torch.float32:
        raise TypeError("tiled_matmul expects float32 tensors")
    if A.ndim != 2 or B.ndim != 2:
        raise ValueError("tiled_matmul expects rank-2 tensors")
    m, k = A.shape
    k2, n = B.shape
    if k2 != k:
        raise ValueError(f"shape mismatch: A={tuple(A.shape)} B={tuple(B.shape)}")
    if m % tile or n % tile or k % tile:
        raise ValueError(f"M={m}, N={n} and K={k} must be multiples of tile={tile}")
    A = A.contiguous()
    B = B.contiguous()
    C = torch.empty((m, n), device=A.device, dtype=torch.float32)
    launch_tiled_matmul(A, B, C, tile=tile)
    return C


__all__ = ["stage_tiles", "tiled_matmul_kernel", "launch_tiled_matmul", "tiled_matmul"]
