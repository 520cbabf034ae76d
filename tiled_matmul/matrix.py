"""
Matrix descriptors over row-major float32 buffers.

A descriptor records (height, width, stride) plus a flat buffer; element
(r, c) lives at `elements[offset + r * stride + c]`. The stride is independent
of the width, which lets a descriptor alias a tile of a larger matrix without
copying (a sub-view).

Ownership rules:
  - `create_host` / `create_device` allocate and own a zero-filled buffer.
  - `get_sub_view` aliases the parent's buffer; a view never owns or frees
    memory and becomes unusable once its parent is freed.
  - `free` releases an owned buffer exactly once; on an empty descriptor it
    is a no-op.

Each buffer lives in exactly one residency (host or device). Nothing keeps the
two in sync; `copy_matrix` is the only bridge.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Tuple

import torch

from tiled_matmul.config import default_device
from tiled_matmul.errors import (
    DeviceRuntimeError,
    MatrixLifetimeError,
    MatrixResidencyError,
    MatrixShapeError,
)


DTYPE = torch.float32
ELEMENT_SIZE = 4  # bytes per float32 element


class Residency(str, enum.Enum):
    HOST = "host"
    DEVICE = "device"


@dataclass(eq=False)
class Matrix:
    height: int = 0
    width: int = 0
    stride: int = 0
    elements: Optional[torch.Tensor] = field(default=None, repr=False)
    offset: int = 0
    residency: Residency = Residency.HOST
    # Owning descriptor for sub-views; None for descriptors that own their buffer.
    parent: Optional["Matrix"] = field(default=None, repr=False)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    @property
    def nbytes(self) -> int:
        return self.height * self.width * ELEMENT_SIZE

    @property
    def is_view(self) -> bool:
        return self.parent is not None

    @property
    def owns_buffer(self) -> bool:
        return self.elements is not None and self.parent is None

    @property
    def device(self) -> Optional[torch.device]:
        owner = self.parent if self.parent is not None else self
        return None if owner.elements is None else owner.elements.device

    def buffer(self) -> torch.Tensor:
        """Return the backing flat buffer, refusing empty descriptors and orphaned views."""
        # Views hold no reference of their own; the owner's buffer is the only one.
        if self.parent is not None:
            if self.parent.elements is None:
                raise MatrixLifetimeError("sub-view used after its parent buffer was freed")
            return self.parent.elements
        if self.elements is None:
            raise MatrixLifetimeError("matrix has no buffer (create_host/create_device first)")
        return self.elements

    def to_tensor(self) -> torch.Tensor:
        """
        Strided 2-D tensor view over this descriptor's elements.

        Writes through the returned tensor land in the shared buffer.
        """
        buf = self.buffer()
        return buf.as_strided((self.height, self.width), (self.stride, 1), buf.storage_offset() + self.offset)


def _check_dims(height: int, width: int) -> None:
    if int(height) < 0 or int(width) < 0:
        raise MatrixShapeError(f"matrix dimensions must be non-negative, got {height}x{width}")


def _check_host(m: Matrix, what: str) -> None:
    if m.residency is not Residency.HOST:
        raise MatrixResidencyError(f"{what} needs a host-resident matrix, got {m.residency.value}")


def _check_index(m: Matrix, r: int, c: int) -> None:
    if not (0 <= r < m.height and 0 <= c < m.width):
        raise IndexError(f"element ({r}, {c}) out of range for {m.height}x{m.width} matrix")


def create_empty() -> Matrix:
    return Matrix()


def create_host(height: int, width: int) -> Matrix:
    _check_dims(height, width)
    h, w = int(height), int(width)
    buf = torch.zeros(h * w, dtype=DTYPE)
    return Matrix(height=h, width=w, stride=w, elements=buf, residency=Residency.HOST)


def create_device(height: int, width: int, *, device: Optional[str] = None) -> Matrix:
    _check_dims(height, width)
    h, w = int(height), int(width)
    dev = device or default_device()
    try:
        buf = torch.zeros(h * w, dtype=DTYPE, device=dev)
    except RuntimeError as e:
        msg = str(e)
        if "out of memory" in msg.lower():
            raise DeviceRuntimeError(f"device OOM allocating {h * w * ELEMENT_SIZE} bytes on {dev}: {msg}") from e
        raise DeviceRuntimeError(f"device allocation failed on {dev}: {type(e).__name__}: {msg}") from e
    return Matrix(height=h, width=w, stride=w, elements=buf, residency=Residency.DEVICE)


def free(m: Matrix) -> None:
    if m.parent is not None:
        raise MatrixLifetimeError("cannot free a sub-view; free the matrix that owns the buffer")
    # Dropping the last reference returns the memory to torch's allocator.
    m.elements = None


def get_element(m: Matrix, r: int, c: int) -> float:
    _check_host(m, "get_element")
    _check_index(m, r, c)
    return float(m.buffer()[m.offset + r * m.stride + c].item())


def set_element(m: Matrix, r: int, c: int, value: float) -> None:
    _check_host(m, "set_element")
    _check_index(m, r, c)
    m.buffer()[m.offset + r * m.stride + c] = float(value)


def get_sub_view(
    parent: Matrix,
    block_row: int,
    block_col: int,
    tile_size: int,
    *,
    out: Optional[Matrix] = None,
) -> Matrix:
    """
    Alias the `tile_size` x `tile_size` tile at block coordinates (block_row, block_col).

    The view keeps the parent's stride and starts `block_row * stride * T + block_col * T`
    elements into the parent's buffer. When `out` is given it must not reference a buffer
    yet; it is filled in place and returned.
    """
    if out is not None and (out.elements is not None or out.parent is not None):
        raise MatrixLifetimeError("sub-view target already references a buffer")
    parent.buffer()
    t = int(tile_size)
    if t < 1:
        raise ValueError(f"tile_size must be positive, got {tile_size}")
    if block_row < 0 or block_col < 0 or (block_row + 1) * t > parent.height or (block_col + 1) * t > parent.width:
        raise IndexError(
            f"tile ({block_row}, {block_col}) of size {t} is outside a {parent.height}x{parent.width} matrix"
        )
    view = out if out is not None else create_empty()
    view.height = t
    view.width = t
    view.stride = parent.stride
    view.offset = parent.offset + block_row * parent.stride * t + block_col * t
    view.residency = parent.residency
    view.parent = parent.parent if parent.parent is not None else parent
    return view


def copy_matrix(dst: Matrix, src: Matrix) -> None:
    """Copy elements between two descriptors of equal shape, across residencies if needed."""
    if dst.shape != src.shape:
        raise MatrixShapeError(f"copy shape mismatch: dst={dst.shape} src={src.shape}")
    dst.to_tensor().copy_(src.to_tensor())


def from_tensor(t: torch.Tensor) -> Matrix:
    """Copy a 2-D tensor into a fresh host-resident matrix."""
    if t.ndim != 2:
        raise MatrixShapeError(f"expected a rank-2 tensor, got shape {tuple(t.shape)}")
    m = create_host(int(t.shape[0]), int(t.shape[1]))
    m.to_tensor().copy_(t.detach().to(device="cpu", dtype=DTYPE))
    return m


def check_multiply_shapes(a: Matrix, b: Matrix, c: Matrix) -> None:
    if a.width != b.height:
        raise MatrixShapeError(f"shape mismatch: A={a.shape} B={b.shape} (width(A) must equal height(B))")
    if c.shape != (a.height, b.width):
        raise MatrixShapeError(f"result shape {c.shape} does not match A x B = {(a.height, b.width)}")


__all__ = [
    "DTYPE",
    "ELEMENT_SIZE",
    "Residency",
    "Matrix",
    "create_empty",
    "create_host",
    "create_device",
    "free",
    "get_element",
    "set_element",
    "get_sub_view",
    "copy_matrix",
    "from_tensor",
    "check_multiply_shapes",
]
