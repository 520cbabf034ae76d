"""
Exception taxonomy for matrix descriptors and the device runtime.

None of these are recovered internally: shape and residency errors are
programmer errors, device errors (no accelerator, OOM, failed launch) are
fatal for the call that raised them.
"""

from __future__ import annotations


class TiledMatmulError(Exception):
    """Base class for all errors raised by this package."""


class MatrixShapeError(TiledMatmulError, ValueError):
    """Operands (or an operand and the result) have incompatible shapes."""


class TileDivisibilityError(MatrixShapeError):
    """A kernel dimension is not an exact multiple of the tile size."""


class MatrixResidencyError(TiledMatmulError):
    """An operation was applied to a descriptor in the wrong residency."""


class MatrixLifetimeError(TiledMatmulError):
    """Buffer ownership was violated (double ownership, freeing a view, use after free)."""


class DeviceRuntimeError(TiledMatmulError, RuntimeError):
    pass


__all__ = [
    "TiledMatmulError",
    "MatrixShapeError",
    "TileDivisibilityError",
    "MatrixResidencyError",
    "MatrixLifetimeError",
    "DeviceRuntimeError",
]
