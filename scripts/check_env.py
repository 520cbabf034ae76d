"""
Environment validation script.

Reports whether the kernels can run here: on a CUDA device, or on CPU
through the Triton interpreter (TRITON_INTERPRET=1).
"""

from __future__ import annotations

import argparse
import importlib
import os
import platform
import sys
from dataclasses import dataclass
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tiled_matmul import config  # noqa: E402
from tiled_matmul.errors import DeviceRuntimeError  # noqa: E402


@dataclass(frozen=True)
class CheckResult:
    name: str
    ok: bool
    detail: str = ""
    hint: str = ""


def _check_python() -> CheckResult:
    v = sys.version_info
    ok = (v.major, v.minor) >= (3, 10)
    return CheckResult("python", ok, detail=f"{v.major}.{v.minor}.{v.micro}", hint="need Python>=3.10" if not ok else "")


def _check_import(mod: str, *, required: bool, hint: str) -> CheckResult:
    try:
        m = importlib.import_module(mod)
        ver = getattr(m, "__version__", None)
        detail = f"ok{(' ' + str(ver)) if ver else ''}"
        return CheckResult(mod, True, detail=detail)
    except Exception as e:
        return CheckResult(mod, False, detail=f"{type(e).__name__}: {e}", hint=(hint if required else f"optional: {hint}"))


def _check_cuda() -> CheckResult:
    try:
        import torch
    except Exception as e:
        return CheckResult("cuda", False, detail=f"torch missing: {type(e).__name__}: {e}")
    if not torch.cuda.is_available():
        return CheckResult("cuda", False, detail="torch.cuda.is_available() is False", hint="optional: kernels can run under TRITON_INTERPRET=1")
    name = torch.cuda.get_device_name(0)
    major, minor = torch.cuda.get_device_capability(0)
    return CheckResult("cuda", True, detail=f"{name} (sm_{major}{minor})")


def _check_device() -> CheckResult:
    try:
        dev = config.default_device()
    except DeviceRuntimeError as e:
        return CheckResult("device", False, detail=str(e), hint="export TRITON_INTERPRET=1 or install a CUDA build of torch")
    mode = "interpreter" if config.interpreter_enabled() else "compiled"
    return CheckResult("device", True, detail=f"{dev} ({mode})")


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--strict", action="store_true", help="require a CUDA device (fail under the interpreter)")
    args = ap.parse_args()

    print(f"platform: {platform.platform()}")
    print(f"cwd: {os.getcwd()}")
    print(f"tile_size: {config.tile_size()}  check_tiles: {config.check_tiles()}  min_free_mb: {config.min_free_mem_mb()}")

    checks: list[CheckResult] = []
    checks.append(_check_python())
    checks.append(_check_import("numpy", required=True, hint="pip install numpy"))
    checks.append(_check_import("torch", required=True, hint="pip install torch"))
    checks.append(_check_import("triton", required=True, hint="pip install triton"))
    checks.append(_check_import("pytest", required=False, hint="pip install -e .[test]"))
    cuda = _check_cuda()
    checks.append(cuda)
    checks.append(_check_device())

    ok_all = True
    for c in checks:
        status = "OK" if c.ok else "FAIL"
        print(f"[{status}] {c.name}: {c.detail}")
        if (not c.ok) and c.hint:
            print(f"  hint: {c.hint}")
        # A missing GPU only fails the run in strict mode.
        if c.name == "cuda" and not args.strict:
            continue
        if c.name == "pytest":
            continue
        ok_all = ok_all and bool(c.ok)

    raise SystemExit(0 if ok_all else 1)


if __name__ == "__main__":
    main()
