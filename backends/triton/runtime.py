"""
Host orchestrator for the Triton matmul kernels.

`multiply_device` is one synchronous round trip:
  validate -> stage device twins -> launch one kernel variant -> copy the
  product back -> release the twins.

The kernels never cross the host/device boundary themselves; every copy
happens here, and every device twin is released on every exit path.
"""

from __future__ import annotations

import contextlib
import enum
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional, Tuple

import torch

from kernels.triton.ops.naive_matmul import launch_naive_matmul
from kernels.triton.ops.tiled_matmul import launch_tiled_matmul
from tiled_matmul import config
from tiled_matmul.errors import (
    DeviceRuntimeError,
    MatrixResidencyError,
    TileDivisibilityError,
)
from tiled_matmul.matrix import (
    ELEMENT_SIZE,
    Matrix,
    Residency,
    check_multiply_shapes,
    copy_matrix,
    create_device,
    free,
)


class KernelVariant(str, enum.Enum):
    DIRECT = "direct"
    TILED = "tiled"


# Launchers share one signature: (A, B, C, *, tile, grid) over 2-D device tensors.
KERNEL_LAUNCHERS: Dict[KernelVariant, Callable[..., None]] = {
    KernelVariant.DIRECT: launch_naive_matmul,
    KernelVariant.TILED: launch_tiled_matmul,
}


@dataclass(frozen=True)
class MatmulLaunch:
    grid: Tuple[int, int]
    block: Tuple[int, int]
    shared_mem: int = 0


def resolve_variant(use_tiled_kernel: bool) -> KernelVariant:
    return KernelVariant.TILED if use_tiled_kernel else KernelVariant.DIRECT


def check_tile_divisibility(a: Matrix, b: Matrix, tile_size: int) -> None:
    bad = [
        f"{name}={value}"
        for name, value in (("height(A)", a.height), ("width(A)", a.width), ("width(B)", b.width))
        if value % tile_size
    ]
    if bad:
        raise TileDivisibilityError(
            f"{', '.join(bad)} not a multiple of tile size {tile_size} "
            "(set TILEDMM_CHECK_TILES=0 to launch anyway)"
        )


def plan_launch(a: Matrix, b: Matrix, tile_size: int, variant: KernelVariant) -> MatmulLaunch:
    """One T x T group per output tile: grid = (width(B) / T, height(A) / T)."""
    t = int(tile_size)
    shared_mem = 2 * t * t * ELEMENT_SIZE if variant is KernelVariant.TILED else 0
    return MatmulLaunch(grid=(b.width // t, a.height // t), block=(t, t), shared_mem=shared_mem)


def _cuda_free_mem_mb(device: str) -> int:
    """
    Best-effort free CUDA memory query.

    Returns 0 when the query itself fails (e.g. the context cannot be
    created), so the caller surfaces a clear error early.
    """
    try:
        free_bytes, _total = torch.cuda.mem_get_info(torch.device(device))
        return int(free_bytes // (1024 * 1024))
    except Exception:
        return 0


def _check_free_mem(device: str) -> None:
    min_free = config.min_free_mem_mb()
    if min_free <= 0 or torch.device(device).type != "cuda":
        return
    free_mb = _cuda_free_mem_mb(device)
    if free_mb < min_free:
        raise DeviceRuntimeError(
            f"device free memory too low ({free_mb} MiB < {min_free} MiB). "
            "Free GPU memory or set TILEDMM_MIN_FREE_MB=0 to bypass."
        )


@contextlib.contextmanager
def device_twin(host: Matrix, *, device: str, copy_in: bool) -> Iterator[Matrix]:
    """Device-resident copy of `host` that is freed when the block exits."""
    twin = create_device(host.height, host.width, device=device)
    try:
        if copy_in:
            copy_matrix(twin, host)
        yield twin
    finally:
        free(twin)


def launch_kernel(variant: KernelVariant, launch: MatmulLaunch, a_dev: Matrix, b_dev: Matrix, c_dev: Matrix) -> None:
    launcher = KERNEL_LAUNCHERS[variant]
    try:
        launcher(
            a_dev.to_tensor(),
            b_dev.to_tensor(),
            c_dev.to_tensor(),
            tile=launch.block[0],
            grid=launch.grid,
        )
        if c_dev.device is not None and c_dev.device.type == "cuda":
            torch.cuda.synchronize(c_dev.device)
    except Exception as e:
        raise DeviceRuntimeError(f"{variant.value} matmul kernel launch failed: {type(e).__name__}: {e}") from e


def multiply_device(
    a: Matrix,
    b: Matrix,
    c: Matrix,
    use_tiled_kernel: bool = False,
    *,
    tile_size: Optional[int] = None,
    device: Optional[str] = None,
) -> MatmulLaunch:
    """
    C = A x B on the accelerator; blocks until C's host buffer holds the product.

    A, B and C must be host-resident (views are fine). Device twins are
    allocated per call and released before returning, including when the
    launch fails. Returns the launch geometry that was used.
    """
    for name, m in (("A", a), ("B", b), ("C", c)):
        if m.residency is not Residency.HOST:
            raise MatrixResidencyError(f"{name} must be host-resident, got {m.residency.value}")
        m.buffer()
    check_multiply_shapes(a, b, c)

    if tile_size is None:
        tile = config.tile_size()
    else:
        tile = int(tile_size)
        if not config.is_valid_tile_size(tile):
            raise ValueError(f"tile_size must be a power of two >= 1, got {tile_size}")
    if config.check_tiles():
        check_tile_divisibility(a, b, tile)

    variant = resolve_variant(use_tiled_kernel)
    launch = plan_launch(a, b, tile, variant)
    dev = device or config.default_device()
    _check_free_mem(dev)

    with contextlib.ExitStack() as stack:
        a_dev = stack.enter_context(device_twin(a, device=dev, copy_in=True))
        b_dev = stack.enter_context(device_twin(b, device=dev, copy_in=True))
        c_dev = stack.enter_context(device_twin(c, device=dev, copy_in=False))
        if launch.grid[0] > 0 and launch.grid[1] > 0:
            launch_kernel(variant, launch, a_dev, b_dev, c_dev)
        copy_matrix(c, c_dev)
    return launch


__all__ = [
    "KernelVariant",
    "KERNEL_LAUNCHERS",
    "MatmulLaunch",
    "resolve_variant",
    "check_tile_divisibility",
    "plan_launch",
    "device_twin",
    "launch_kernel",
    "multiply_device",
]
