from __future__ import annotations

import pytest
import torch

from backends.triton import runtime
from backends.triton.runtime import (
    KERNEL_LAUNCHERS,
    KernelVariant,
    MatmulLaunch,
    check_tile_divisibility,
    device_twin,
    multiply_device,
    plan_launch,
    resolve_variant,
)
from tiled_matmul.errors import (
    DeviceRuntimeError,
    MatrixLifetimeError,
    MatrixResidencyError,
    MatrixShapeError,
    TileDivisibilityError,
)
from tiled_matmul.matrix import Residency, create_device, create_empty, create_host, free, from_tensor
from verify.gen_cases import random_integers


def _fake_launcher(calls, fill=None, exc=None):
    def launcher(A, B, C, *, tile, grid):
        calls.append({"A": A.clone(), "B": B.clone(), "shape": tuple(C.shape), "tile": tile, "grid": grid})
        if exc is not None:
            raise exc
        if fill is not None:
            C.fill_(fill)

    return launcher


def test_resolve_variant():
    assert resolve_variant(False) is KernelVariant.DIRECT
    assert resolve_variant(True) is KernelVariant.TILED
    assert set(KERNEL_LAUNCHERS) == {KernelVariant.DIRECT, KernelVariant.TILED}


def test_plan_launch_geometry():
    a = create_host(8, 16)
    b = create_host(16, 12)
    direct = plan_launch(a, b, 4, KernelVariant.DIRECT)
    assert direct == MatmulLaunch(grid=(3, 2), block=(4, 4), shared_mem=0)
    tiled = plan_launch(a, b, 4, KernelVariant.TILED)
    assert tiled.grid == (3, 2)
    assert tiled.shared_mem == 2 * 4 * 4 * 4


def test_check_tile_divisibility():
    check_tile_divisibility(create_host(8, 4), create_host(4, 12), 4)
    with pytest.raises(TileDivisibilityError, match="width\\(A\\)=6"):
        check_tile_divisibility(create_host(8, 6), create_host(6, 12), 4)
    with pytest.raises(MatrixShapeError):
        check_tile_divisibility(create_host(8, 4), create_host(4, 10), 4)


def test_device_twin_released_on_exit():
    host = random_integers(4, 4, seed=0)
    with device_twin(host, device="cpu", copy_in=True) as twin:
        assert twin.residency is Residency.DEVICE
        assert torch.equal(twin.to_tensor(), host.to_tensor())
        assert twin.elements.data_ptr() != host.elements.data_ptr()
    assert twin.elements is None


def test_device_twin_released_on_error():
    host = create_host(4, 4)
    with pytest.raises(RuntimeError, match="boom"):
        with device_twin(host, device="cpu", copy_in=False) as twin:
            raise RuntimeError("boom")
    assert twin.elements is None


def test_multiply_device_stages_and_copies_back(monkeypatch):
    calls = []
    monkeypatch.setitem(KERNEL_LAUNCHERS, KernelVariant.TILED, _fake_launcher(calls, fill=7.0))
    a = random_integers(8, 4, seed=1)
    b = random_integers(4, 12, seed=2)
    c = create_host(8, 12)
    launch = multiply_device(a, b, c, True, tile_size=4, device="cpu")
    assert launch.grid == (3, 2)
    assert len(calls) == 1
    assert calls[0]["tile"] == 4 and calls[0]["grid"] == (3, 2)
    assert torch.equal(calls[0]["A"], a.to_tensor())
    assert torch.equal(calls[0]["B"], b.to_tensor())
    assert torch.all(c.to_tensor() == 7.0)


def test_multiply_device_flag_selects_direct(monkeypatch):
    direct_calls, tiled_calls = [], []
    monkeypatch.setitem(KERNEL_LAUNCHERS, KernelVariant.DIRECT, _fake_launcher(direct_calls))
    monkeypatch.setitem(KERNEL_LAUNCHERS, KernelVariant.TILED, _fake_launcher(tiled_calls))
    multiply_device(create_host(4, 4), create_host(4, 4), create_host(4, 4), False, tile_size=4, device="cpu")
    assert len(direct_calls) == 1 and not tiled_calls


def test_multiply_device_frees_twins_when_launch_fails(monkeypatch):
    freed = []
    real_free = runtime.free

    def spy_free(m):
        freed.append(m.residency)
        real_free(m)

    monkeypatch.setattr(runtime, "free", spy_free)
    monkeypatch.setitem(KERNEL_LAUNCHERS, KernelVariant.DIRECT, _fake_launcher([], exc=RuntimeError("launch exploded")))
    c = create_host(4, 4)
    with pytest.raises(DeviceRuntimeError, match="launch exploded"):
        multiply_device(create_host(4, 4), create_host(4, 4), c, False, tile_size=4, device="cpu")
    assert freed == [Residency.DEVICE] * 3
    assert torch.count_nonzero(c.to_tensor()) == 0


def test_shape_errors_fail_before_allocation(monkeypatch):
    allocated = []
    monkeypatch.setattr(runtime, "create_device", lambda *a, **k: allocated.append(a))
    with pytest.raises(MatrixShapeError):
        multiply_device(create_host(4, 8), create_host(4, 4), create_host(4, 4), device="cpu")
    with pytest.raises(MatrixShapeError):
        multiply_device(create_host(4, 4), create_host(4, 8), create_host(4, 4), device="cpu")
    with pytest.raises(TileDivisibilityError):
        multiply_device(create_host(6, 6), create_host(6, 6), create_host(6, 6), True, tile_size=4, device="cpu")
    assert allocated == []


def test_tile_check_can_be_disabled(monkeypatch):
    calls = []
    monkeypatch.setenv("TILEDMM_CHECK_TILES", "0")
    monkeypatch.setitem(KERNEL_LAUNCHERS, KernelVariant.TILED, _fake_launcher(calls))
    launch = multiply_device(create_host(6, 6), create_host(6, 6), create_host(6, 6), True, tile_size=4, device="cpu")
    assert launch.grid == (1, 1)
    assert len(calls) == 1


def test_tile_size_from_environment(monkeypatch):
    calls = []
    monkeypatch.setenv("TILEDMM_TILE_SIZE", "2")
    monkeypatch.setitem(KERNEL_LAUNCHERS, KernelVariant.DIRECT, _fake_launcher(calls))
    launch = multiply_device(create_host(6, 2), create_host(2, 4), create_host(6, 4), device="cpu")
    assert launch.block == (2, 2)
    assert launch.grid == (2, 3)


def test_invalid_explicit_tile_size():
    with pytest.raises(ValueError, match="power of two"):
        multiply_device(create_host(6, 6), create_host(6, 6), create_host(6, 6), tile_size=3, device="cpu")


def test_operands_must_be_host_resident():
    dev = create_device(4, 4, device="cpu")
    with pytest.raises(MatrixResidencyError, match="B must be host-resident"):
        multiply_device(create_host(4, 4), dev, create_host(4, 4), device="cpu")


def test_operands_must_have_buffers():
    a = create_host(4, 4)
    free(a)
    with pytest.raises(MatrixLifetimeError):
        multiply_device(a, create_host(4, 4), create_host(4, 4), device="cpu")
    with pytest.raises(MatrixLifetimeError):
        multiply_device(create_empty(), create_host(0, 0), create_host(0, 0), device="cpu")


def test_empty_grid_skips_launch(monkeypatch):
    calls = []
    monkeypatch.setitem(KERNEL_LAUNCHERS, KernelVariant.DIRECT, _fake_launcher(calls))
    c = create_host(0, 4)
    launch = multiply_device(create_host(0, 4), create_host(4, 4), c, tile_size=4, device="cpu")
    assert launch.grid == (1, 0)
    assert calls == []


def test_free_memory_guard(monkeypatch):
    allocated = []
    monkeypatch.setenv("TILEDMM_MIN_FREE_MB", "1024")
    monkeypatch.setattr(runtime, "_cuda_free_mem_mb", lambda device: 16)
    monkeypatch.setattr(runtime, "create_device", lambda *a, **k: allocated.append(a))
    with pytest.raises(DeviceRuntimeError, match="free memory too low"):
        multiply_device(create_host(4, 4), create_host(4, 4), create_host(4, 4), device="cuda")
    assert allocated == []


def test_result_view_receives_product(monkeypatch):
    monkeypatch.setitem(KERNEL_LAUNCHERS, KernelVariant.DIRECT, _fake_launcher([], fill=3.0))
    parent = create_host(8, 8)
    from tiled_matmul.matrix import get_sub_view

    c = get_sub_view(parent, 1, 0, 4)
    multiply_device(from_tensor(torch.ones(4, 4)), from_tensor(torch.ones(4, 4)), c, tile_size=4, device="cpu")
    full = parent.to_tensor()
    assert torch.all(full[4:8, 0:4] == 3.0)
    assert torch.count_nonzero(full[0:4, :]) == 0
    assert torch.count_nonzero(full[4:8, 4:8]) == 0
