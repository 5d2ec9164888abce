"""GPU memory queries via nvidia-smi, used to size batch chunks."""

import logging
import shutil
import subprocess

from speech_stitcher.constants import MIN_GPU_CAPACITY_MB, VRAM_CHUNK_SIZES, VRAM_MAX_CHUNK_SIZE
from speech_stitcher.errors import GPUError

logger = logging.getLogger(__name__)

_QUERY = [
    "nvidia-smi",
    "--query-gpu=memory.total,memory.used,memory.free",
    "--format=csv,noheader,nounits",
]


def _parse_memory_output(output: str) -> dict:
    """Parse the first GPU line: "total, used, free" in MiB."""
    lines = [line for line in output.strip().split("\n") if line.strip()]
    if not lines:
        raise GPUError("no GPU reported by nvidia-smi", kind="no_gpu_found")

    fields = [f.strip() for f in lines[0].split(",")]
    if len(fields) != 3:
        raise GPUError(f"unexpected nvidia-smi output: {lines[0]!r}", kind="parse_error")
    try:
        total, used, free = (int(f) for f in fields)
    except ValueError:
        raise GPUError(f"unexpected nvidia-smi output: {lines[0]!r}", kind="parse_error")
    return {"total": total, "used": used, "free": free}


def get_memory_info() -> dict:
    """Return {"total", "used", "free"} in MiB for the first GPU."""
    if not shutil.which("nvidia-smi"):
        raise GPUError("nvidia-smi not found", kind="nvidia_smi_not_found")

    result = subprocess.run(_QUERY, capture_output=True, text=True)
    if result.returncode != 0:
        raise GPUError(f"nvidia-smi exited with {result.returncode}", kind="nvidia_smi_failed")
    return _parse_memory_output(result.stdout)


def available_vram() -> int:
    """Free VRAM in MiB."""
    return get_memory_info()["free"]


def recommended_chunk_size() -> int:
    """Chunk size heuristic: more free VRAM allows longer text per request.

      < 2 GB free → 200, 2–4 GB → 500, 4–8 GB → 1000, otherwise 2000.
    """
    free_mb = available_vram()
    for threshold, size in VRAM_CHUNK_SIZES:
        if free_mb < threshold:
            return size
    return VRAM_MAX_CHUNK_SIZE


def has_capacity(min_mb: int = MIN_GPU_CAPACITY_MB) -> bool:
    """True if at least min_mb MiB of VRAM are free. False when no GPU can be queried."""
    try:
        return available_vram() >= min_mb
    except GPUError:
        return False
