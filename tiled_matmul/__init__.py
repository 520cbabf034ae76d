from .errors import (
    DeviceRuntimeError,
    MatrixLifetimeError,
    MatrixResidencyError,
    MatrixShapeError,
    TileDivisibilityError,
    TiledMatmulError,
)
from .matrix import (
    DTYPE,
    ELEMENT_SIZE,
    Matrix,
    Residency,
    check_multiply_shapes,
    copy_matrix,
    create_device,
    create_empty,
    create_host,
    free,
    from_tensor,
    get_element,
    get_sub_view,
    set_element,
)

__all__ = [
    "TiledMatmulError",
    "MatrixShapeError",
    "TileDivisibilityError",
    "MatrixResidencyError",
    "MatrixLifetimeError",
    "DeviceRuntimeError",
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
