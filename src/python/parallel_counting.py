"""
Distributed counting sort over a replicated array.

Every rank holds the full array. The ranks agree on the global value range,
count their own slice into a histogram, and send the histograms to rank 0,
which rebuilds the sorted array and broadcasts it back.

Two partition schemes are used. Range discovery gives rank 0 the last block
plus the leftover elements; counting gives rank 0 the first block plus the
leftover elements. Each phase only needs full, non-overlapping coverage, so
the schemes do not have to agree.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np

from array_init import array_init_from_file, array_init_random
from group_comm import Communicator, CountingSortError, check_group
from sort_config import RANGE_MAX, RANGE_MIN, SortConfig, Stopwatch, format_record

logger = logging.getLogger(__name__)

RANGE_SCHEME = "range"
COUNT_SCHEME = "count"

# Tag of the histogram messages sent to the coordinator.
HISTOGRAM_TAG = 2


def partition(n: int, size: int, rank: int, scheme: str) -> Tuple[int, int]:
    """Return ``(start, length)`` of the block ``rank`` owns under ``scheme``.

    For the count scheme this is the main block only; rank 0 also owns the
    leftover tail ``[L*P, n)`` (see ``owned_slices``).
    """
    local_size = n // size
    num_leftout = n - local_size * size
    if scheme == RANGE_SCHEME:
        if rank > 0:
            return (rank - 1) * local_size, local_size
        return (size - 1) * local_size, local_size + num_leftout
    if scheme == COUNT_SCHEME:
        return rank * local_size, local_size
    raise ValueError(f"unknown partition scheme {scheme!r}")


def owned_slices(n: int, size: int, rank: int, scheme: str) -> List[slice]:
    """Every index range ``rank`` owns under ``scheme``."""
    start, length = partition(n, size, rank, scheme)
    slices = [slice(start, start + length)]
    if scheme == COUNT_SCHEME and rank == 0:
        index_leftout = (n // size) * size
        if index_leftout < n:
            slices.append(slice(index_leftout, n))
    return slices


def find_min_max(
    array: np.ndarray, comm: Communicator, range_min: int = RANGE_MIN, range_max: int = RANGE_MAX
) -> Tuple[int, int]:
    """Global (min, max) of ``array``, the same on every rank."""
    # Seeded with the opposite bounds so an empty slice changes nothing.
    local_min, local_max = range_max, range_min
    for owned in owned_slices(len(array), comm.size, comm.rank, RANGE_SCHEME):
        block = array[owned]
        if len(block):
            local_min = min(local_min, int(block.min()))
            local_max = max(local_max, int(block.max()))

    return comm.allreduce_min(local_min), comm.allreduce_max(local_max)


def local_histogram(array: np.ndarray, lo: int, hi: int, comm: Communicator) -> np.ndarray:
    """Count the values of this rank's slices into ``hi - lo + 1`` buckets."""
    count_size = hi - lo + 1
    local_count = np.zeros(count_size, dtype=np.int64)
    for owned in owned_slices(len(array), comm.size, comm.rank, COUNT_SCHEME):
        block = array[owned]
        if len(block):
            local_count += np.bincount(block.astype(np.int64) - lo, minlength=count_size)
    return local_count


def aggregate_histograms(local_count: np.ndarray, comm: Communicator) -> np.ndarray:
    """Sum every rank's histogram on rank 0 (only called there)."""
    count = local_count.copy()
    for source in range(1, comm.size):
        count += comm.recv(source=source, tag=HISTOGRAM_TAG)
    return count


def reconstruct(array: np.ndarray, count: np.ndarray, lo: int) -> np.ndarray:
    """Write value ``lo + i`` ``count[i]`` times, in order, from index 0."""
    k = 0
    for i, c in enumerate(count):
        if c:
            array[k : k + c] = lo + i
            k += c
    if k != len(array):
        raise RuntimeError(f"histogram holds {k} elements, array has {len(array)}")
    return array


def broadcast_result(array: np.ndarray, comm: Communicator) -> np.ndarray:
    """Overwrite every rank's replica with rank 0's array."""
    sorted_array = comm.bcast(array if comm.rank == 0 else None, root=0)
    if comm.rank != 0:
        array[:] = sorted_array
    return array


def counting_sort(
    array: np.ndarray, comm: Communicator, range_min: int = RANGE_MIN, range_max: int = RANGE_MAX
) -> np.ndarray:
    """Sort the replicated ``array`` in place on every rank of ``comm``.

    ``range_min``/``range_max`` are the bounds the values were drawn from;
    they only seed the range scan. Every rank must call this.
    """
    lo, hi = find_min_max(array, comm, range_min, range_max)
    logger.debug("rank %d: global range [%d, %d]", comm.rank, lo, hi)

    local_count = local_histogram(array, lo, hi, comm)

    if comm.rank == 0:
        count = aggregate_histograms(local_count, comm)
        # Not parallelizable: this writes the globally ordered sequence.
        reconstruct(array, count, lo)
    else:
        comm.send(local_count, dest=0, tag=HISTOGRAM_TAG)

    return broadcast_result(array, comm)


def run_sort(config: SortConfig, comm: Communicator) -> Optional[str]:
    """Initialise, sort and time one run; rank 0 returns the timing record."""
    comm.barrier()
    with Stopwatch() as init_timer:
        if config.input_path is not None:
            array = array_init_from_file(comm, config.size, config.input_path)
        else:
            array = array_init_random(comm, config.size, config.range_min, config.range_max, seed=config.seed)
        comm.barrier()

    with Stopwatch() as sort_timer:
        counting_sort(array, comm, config.range_min, config.range_max)
        comm.barrier()

    if config.verify:
        error = None
        if len(array) > 1 and (array[1:] < array[:-1]).any():
            error = CountingSortError(f"rank {comm.rank}: result is not sorted correctly")
        check_group(comm, error)

    if comm.rank != 0:
        return None
    return format_record(config.size, comm.size, init_timer.elapsed, sort_timer.elapsed)
