"""
Command-line harness: run both kernels against the host reference.

Checks, for each selected kernel variant:
  - the antidiagonal scenario (Z = X @ Y reverses Y's rows, X @ Z == Y)
  - integer-random operands over 1/2/many tiles per dimension
  - zero operands
  - optionally random float operands (loose tolerance)

Typical usage:
  TRITON_INTERPRET=1 PYTHONPATH=. python scripts/verify_matmul.py --m 8 --n 12 --print
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, List, Tuple

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backends.triton.runtime import KernelVariant, multiply_device  # noqa: E402
from tiled_matmul import config  # noqa: E402
from tiled_matmul.matrix import create_host  # noqa: E402
from verify.gen_cases import (  # noqa: E402
    antidiagonal_identity,
    generate_cases,
    random_floats,
    random_integers,
    ramp,
    zeros,
)
from verify.reference import multiply_host  # noqa: E402
from verify.report import print_matrix  # noqa: E402
from verify.tolerances import EXACT_TOLERANCE, MATMUL_F32, close, equal, max_abs_err  # noqa: E402


def _antidiagonal_scenario(m: int, n: int, use_tiled: bool, tile: int, show: bool) -> Tuple[bool, str]:
    x = antidiagonal_identity(m)
    y = ramp(m, n)
    z = create_host(m, n)
    back = create_host(m, n)
    multiply_device(x, y, z, use_tiled, tile_size=tile)
    multiply_device(x, z, back, use_tiled, tile_size=tile)
    if show:
        print_matrix(x, "X")
        print_matrix(y, "Y")
        print_matrix(z, "Z = X*Y")
        print_matrix(back, "X*Z")
    if equal(z, y, EXACT_TOLERANCE):
        return False, "X*Y unexpectedly equals Y"
    if not equal(back, y, EXACT_TOLERANCE):
        return False, f"X*(X*Y) != Y (max_abs_err={max_abs_err(back, y):.3g})"
    return True, f"{m}x{n}"


def _random_cases(use_tiled: bool, tile: int, seed: int) -> Tuple[bool, str]:
    cases = generate_cases(tile, seed=seed)
    for case in cases:
        a = random_integers(case.m, case.k, seed=case.seed)
        b = random_integers(case.k, case.n, seed=case.seed + 1000)
        ref = create_host(case.m, case.n)
        got = create_host(case.m, case.n)
        multiply_host(a, b, ref)
        multiply_device(a, b, got, use_tiled, tile_size=tile)
        if not equal(got, ref, EXACT_TOLERANCE):
            return False, f"case {case.name}: max_abs_err={max_abs_err(got, ref):.3g}"
    return True, f"{len(cases)} cases"


def _zero_case(use_tiled: bool, tile: int) -> Tuple[bool, str]:
    a = zeros(2 * tile, 3 * tile)
    b = zeros(3 * tile, tile)
    c = create_host(2 * tile, tile)
    multiply_device(a, b, c, use_tiled, tile_size=tile)
    return equal(c, zeros(2 * tile, tile), 0.0), "zeros"


def _float_case(use_tiled: bool, tile: int, seed: int) -> Tuple[bool, str]:
    size = 8 * tile
    a = random_floats(size, size, seed=seed)
    b = random_floats(size, size, seed=seed + 1)
    ref = create_host(size, size)
    got = create_host(size, size)
    multiply_host(a, b, ref)
    multiply_device(a, b, got, use_tiled, tile_size=tile)
    return close(got, ref, MATMUL_F32), f"{size}x{size} max_abs_err={max_abs_err(got, ref):.3g}"


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--m", type=int, default=8, help="rows of the antidiagonal scenario")
    ap.add_argument("--n", type=int, default=12, help="columns of the antidiagonal scenario")
    ap.add_argument("--variant", choices=["direct", "tiled", "both"], default="both")
    ap.add_argument("--tile-size", type=int, default=None, help="default: TILEDMM_TILE_SIZE or 4")
    ap.add_argument("--seed", type=int, default=0)
    ap.add_argument("--floats", action="store_true", help="also compare random float operands")
    ap.add_argument("--print", dest="show", action="store_true", help="dump the scenario matrices")
    args = ap.parse_args()

    tile = int(args.tile_size) if args.tile_size is not None else config.tile_size()
    variants = [KernelVariant.DIRECT, KernelVariant.TILED] if args.variant == "both" else [KernelVariant(args.variant)]
    print(f"device={config.default_device()} tile={tile} interpreter={config.interpreter_enabled()}")

    ok_all = True
    for variant in variants:
        use_tiled = variant is KernelVariant.TILED
        checks: List[Tuple[str, Callable[[], Tuple[bool, str]]]] = [
            ("antidiagonal", lambda: _antidiagonal_scenario(args.m, args.n, use_tiled, tile, args.show)),
            ("random_int", lambda: _random_cases(use_tiled, tile, args.seed)),
            ("zeros", lambda: _zero_case(use_tiled, tile)),
        ]
        if args.floats:
            checks.append(("random_float", lambda: _float_case(use_tiled, tile, args.seed)))
        for name, fn in checks:
            ok, detail = fn()
            status = "ok" if ok else "FAIL"
            print(f"[{status}] {variant.value}:{name} {detail}")
            ok_all = ok_all and ok

    raise SystemExit(0 if ok_all else 1)


if __name__ == "__main__":
    main()
