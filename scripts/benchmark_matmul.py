"""
Time the direct and tiled kernels.

Two modes per size:
  - kernel: operands already on the device, only the launch is timed
  - round_trip: full multiply_device call (twin allocation, copies, launch)

Typical usage:
  PYTHONPATH=. python scripts/benchmark_matmul.py --size 256 --size 512 --iters 20 --out artifacts/bench.json
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path
from typing import Any, Callable, Dict, List

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import torch  # noqa: E402

from backends.triton.runtime import KERNEL_LAUNCHERS, KernelVariant, multiply_device  # noqa: E402
from tiled_matmul import config  # noqa: E402
from tiled_matmul.matrix import create_host  # noqa: E402
from verify.gen_cases import random_floats  # noqa: E402


def _sync(device: str) -> None:
    if torch.device(device).type == "cuda":
        torch.cuda.synchronize()


def _time_ms(fn: Callable[[], None], *, device: str, warmup: int, iters: int) -> float:
    for _ in range(warmup):
        fn()
    _sync(device)
    t0 = time.perf_counter()
    for _ in range(iters):
        fn()
    _sync(device)
    return (time.perf_counter() - t0) / max(1, iters) * 1000.0


def bench_size(size: int, *, tile: int, device: str, warmup: int, iters: int) -> List[Dict[str, Any]]:
    a = random_floats(size, size, seed=0)
    b = random_floats(size, size, seed=1)
    c = create_host(size, size)
    a_t = a.to_tensor().to(device)
    b_t = b.to_tensor().to(device)
    c_t = torch.empty((size, size), device=device, dtype=torch.float32)

    rows: List[Dict[str, Any]] = []
    for variant in (KernelVariant.DIRECT, KernelVariant.TILED):
        launcher = KERNEL_LAUNCHERS[variant]
        kernel_ms = _time_ms(lambda: launcher(a_t, b_t, c_t, tile=tile), device=device, warmup=warmup, iters=iters)
        use_tiled = variant is KernelVariant.TILED
        trip_ms = _time_ms(
            lambda: multiply_device(a, b, c, use_tiled, tile_size=tile, device=device),
            device=device,
            warmup=warmup,
            iters=iters,
        )
        # 2*N^3 flops per multiply.
        gflops = (2.0 * size**3) / (kernel_ms * 1e6) if kernel_ms > 0 else 0.0
        rows.append(
            {
                "size": size,
                "variant": variant.value,
                "tile": tile,
                "kernel_ms": kernel_ms,
                "round_trip_ms": trip_ms,
                "kernel_gflops": gflops,
            }
        )
    return rows


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--size", type=int, action="append", default=[], help="repeatable; square matrix edge")
    ap.add_argument("--tile-size", type=int, default=None, help="default: TILEDMM_TILE_SIZE or 4")
    ap.add_argument("--warmup", type=int, default=3)
    ap.add_argument("--iters", type=int, default=10)
    ap.add_argument("--out", default=None, help="optional: write results JSON to this path")
    args = ap.parse_args()

    tile = int(args.tile_size) if args.tile_size is not None else config.tile_size()
    device = config.default_device()
    sizes = [int(s) for s in (args.size or [64, 128, 256])]
    bad = [s for s in sizes if s % tile]
    if bad:
        raise SystemExit(f"sizes {bad} are not multiples of tile {tile}")

    results: List[Dict[str, Any]] = []
    for size in sizes:
        for row in bench_size(size, tile=tile, device=device, warmup=int(args.warmup), iters=int(args.iters)):
            results.append(row)
            print(
                f"N={row['size']:<5} {row['variant']:<6} kernel={row['kernel_ms']:.3f} ms "
                f"round_trip={row['round_trip_ms']:.3f} ms ({row['kernel_gflops']:.2f} GFLOP/s)"
            )

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"device": device, "tile": tile, "interpreter": config.interpreter_enabled(), "results": results}
        out_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"Saved: {out_path}")


if __name__ == "__main__":
    main()
