"""Dispatch bookkeeping for compute kernels: workgroup counts, ids and uniforms."""

from __future__ import annotations

import struct
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import reduce


@dataclass(frozen=True)
class KernelId:
    """Identifies a compiled kernel variant by name and its boolean options."""

    name: str
    info: tuple[bool, ...] = ()

    def with_info(self, value: bool) -> KernelId:
        """Return a new id with one more option appended."""
        return KernelId(self.name, self.info + (bool(value),))


def _ceil_div(value: int, divisor: int) -> int:
    return -(-value // divisor)


def calc_cube_count(
    sizes: Sequence[int], workgroup_size: Sequence[int]
) -> tuple[int, int, int]:
    """Number of workgroups needed along each axis to cover ``sizes`` threads.

    Axes not given in ``sizes`` count as one thread.
    """
    if len(workgroup_size) != 3:
        raise ValueError("workgroup size must have three components")
    if any(w <= 0 for w in workgroup_size):
        raise ValueError("workgroup size components must be positive")
    if any(s < 0 for s in sizes):
        raise ValueError("thread counts must not be negative")
    padded = list(sizes[:3]) + [1] * (3 - min(len(sizes), 3))
    return tuple(_ceil_div(s, w) for s, w in zip(padded, workgroup_size))


def calc_kernel_id(name: str, values: Iterable[bool]) -> KernelId:
    """Build a kernel id from a kernel name and its option flags."""
    return reduce(KernelId.with_info, values, KernelId(name))


def create_meta_binding(data: bytes | bytearray | memoryview) -> tuple[int, ...]:
    """Reinterpret plain bytes as little-endian 32-bit words, zero padded."""
    raw = memoryview(data).tobytes()
    raw += b"\x00" * (-len(raw) % 4)
    return struct.unpack(f"<{len(raw) // 4}I", raw)


def dispatch_size(
    thread_count: int | Sequence[int], wg_size: Sequence[int]
) -> tuple[int, int, int]:
    """Workgroup counts for an indirect dispatch covering ``thread_count`` threads."""
    counts = [thread_count] if isinstance(thread_count, int) else list(thread_count)
    return calc_cube_count(counts, wg_size)