"""
Triton backend: host orchestration for the direct and tiled matmul kernels.
"""

from .runtime import (  # noqa: F401
    KERNEL_LAUNCHERS,
    KernelVariant,
    MatmulLaunch,
    multiply_device,
    plan_launch,
    resolve_variant,
)

__all__ = [
    "KERNEL_LAUNCHERS",
    "KernelVariant",
    "MatmulLaunch",
    "multiply_device",
    "plan_launch",
    "resolve_variant",
]
