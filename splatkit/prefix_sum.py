"""Hierarchical inclusive prefix sum over 32-bit integers."""

from __future__ import annotations

from collections.abc import Iterable

import numpy as np

THREADS_PER_GROUP = 512


def _scan_blocks(values: np.ndarray, threads_per_group: int) -> np.ndarray:
    """Inclusive scan of each consecutive block of ``threads_per_group`` values."""
    n = values.size
    padded = np.zeros(-(-n // threads_per_group) * threads_per_group, dtype=np.int32)
    padded[:n] = values
    blocks = padded.reshape(-1, threads_per_group)
    return np.cumsum(blocks, axis=1, dtype=np.int32).reshape(-1)[:n]


def _block_totals(scanned: np.ndarray, threads_per_group: int) -> np.ndarray:
    """Last scanned value of each block."""
    n = scanned.size
    num_blocks = -(-n // threads_per_group)
    ends = np.minimum(np.arange(1, num_blocks + 1) * threads_per_group, n) - 1
    return scanned[ends]


def _add_scanned_sums(
    target: np.ndarray, sums: np.ndarray, threads_per_group: int
) -> np.ndarray:
    """Add the scanned total of all preceding blocks to every block of ``target``."""
    offsets = np.concatenate([np.zeros(1, dtype=np.int32), sums[:-1]])
    spread = np.repeat(offsets, threads_per_group)[: target.size]
    return (target + spread).astype(np.int32)


def prefix_sum(
    values: Iterable[int] | np.ndarray, threads_per_group: int = THREADS_PER_GROUP
) -> np.ndarray:
    """Inclusive prefix sum with 32-bit wrap-around, computed block by block."""
    if threads_per_group < 2:
        raise ValueError("threads_per_group must be at least 2")
    array = np.asarray(values if isinstance(values, np.ndarray) else list(values))
    if array.ndim != 1:
        raise ValueError("prefix_sum expects a one-dimensional sequence")
    array = array.astype(np.int32)

    outputs = _scan_blocks(array, threads_per_group)
    if array.size <= threads_per_group:
        return outputs

    levels = []
    current = outputs
    while current.size > threads_per_group:
        current = _scan_blocks(_block_totals(current, threads_per_group), threads_per_group)
        levels.append(current)

    carry = levels[-1]
    for lower in reversed(levels[:-1]):
        carry = _add_scanned_sums(lower, carry, threads_per_group)
    return _add_scanned_sums(outputs, carry, threads_per_group)