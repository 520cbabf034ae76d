"""
Environment-driven configuration.

Every knob is read at call time, so scripts and tests can flip them through
`os.environ` without re-importing anything:

  TILEDMM_TILE_SIZE    tile edge T (power of two, default 4)
  TILEDMM_DEVICE       torch device for device-resident buffers
  TILEDMM_CHECK_TILES  "0" skips the tile-divisibility guard (default on)
  TILEDMM_MIN_FREE_MB  minimum free CUDA memory before allocating (default 0 = off)
  TRITON_INTERPRET     "1" runs Triton kernels on CPU tensors
"""

from __future__ import annotations

import os

from tiled_matmul.errors import DeviceRuntimeError


DEFAULT_TILE_SIZE = 4

_FALSE_VALUES = {"0", "false", "no", "n", "off"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(str(raw).strip())
    except ValueError:
        return default


def is_valid_tile_size(value: int) -> bool:
    v = int(value)
    return v >= 1 and (v & (v - 1)) == 0


def tile_size() -> int:
    v = _env_int("TILEDMM_TILE_SIZE", DEFAULT_TILE_SIZE)
    # tl.arange only accepts power-of-two extents.
    if not is_valid_tile_size(v):
        return DEFAULT_TILE_SIZE
    return v


def check_tiles() -> bool:
    return str(os.getenv("TILEDMM_CHECK_TILES", "1")).strip().lower() not in _FALSE_VALUES


def min_free_mem_mb() -> int:
    return max(0, _env_int("TILEDMM_MIN_FREE_MB", 0))


def interpreter_enabled() -> bool:
    return os.getenv("TRITON_INTERPRET", "0").strip() == "1"


def default_device() -> str:
    """
    Pick the torch device that backs device-resident matrices.

    Order: explicit TILEDMM_DEVICE, then CUDA, then CPU when the Triton
    interpreter is enabled.
    """
    override = os.getenv("TILEDMM_DEVICE")
    if override and override.strip():
        return override.strip()
    import torch  # noqa: PLC0415

    if torch.cuda.is_available():
        return "cuda"
    if interpreter_enabled():
        return "cpu"
    raise DeviceRuntimeError(
        "no accelerator available: torch.cuda is not available and TRITON_INTERPRET is not set "
        "(export TRITON_INTERPRET=1 to run the kernels on CPU)"
    )


__all__ = [
    "DEFAULT_TILE_SIZE",
    "is_valid_tile_size",
    "tile_size",
    "check_tiles",
    "min_free_mem_mb",
    "interpreter_enabled",
    "default_device",
]
