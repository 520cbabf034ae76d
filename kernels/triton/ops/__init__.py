"""
Triton matmul kernels.

- `naive_matmul.py`: direct variant, every lane streams its row of A and
  column of B from main memory.
- `tiled_matmul.py`: tiled variant, each program stages T x T tiles of A and
  B into group-shared scratch between two barriers.

Both expose a `launch_*` entry taking (A, B, C, *, tile, grid) so the host
orchestrator in `backends/triton/runtime.py` can pick either one.
"""
