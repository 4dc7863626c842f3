"""
Fill the replicated input array on every rank.

Both initialisers split the work the same way: each rank produces
``size // P`` elements, the pieces are all-gathered in rank order, and the
``size % P`` leftover elements at the end are produced identically on every
rank, so all replicas start out equal.
"""

from __future__ import annotations

import os
from typing import Optional

import numpy as np

from group_comm import Communicator, ConfigurationError, ResourceError, check_group

DTYPE = np.int32
ITEM_SIZE = np.dtype(DTYPE).itemsize


def safe_alloc(comm: Communicator, count: int) -> np.ndarray:
    """Allocate ``count`` int32 elements, failing on every rank together."""
    nbytes = count * ITEM_SIZE
    array = None
    error = None
    if nbytes < 1:
        error = ResourceError(f"can not allocate memory of {nbytes} bytes")
    else:
        try:
            array = np.empty(count, dtype=DTYPE)
        except MemoryError:
            error = ResourceError(f"could not allocate memory of {nbytes} bytes")
    check_group(comm, error)
    return array


def _fill_from_pieces(comm: Communicator, array: np.ndarray, local: np.ndarray) -> int:
    local_size = len(local)
    pieces = comm.allgather(local)
    index_leftout = local_size * comm.size
    if index_leftout:
        array[:index_leftout] = np.concatenate(pieces)
    return index_leftout


def array_init_random(
    comm: Communicator, size: int, range_min: int, range_max: int, seed: Optional[int] = None
) -> np.ndarray:
    """Uniform integers in ``[range_min, range_max]``, identical on every rank."""
    array = safe_alloc(comm, size)
    local_size = size // comm.size

    # Every rank draws from its own stream.
    rng = np.random.default_rng(None if seed is None else seed + comm.rank)
    local = rng.integers(range_min, range_max, size=local_size, endpoint=True, dtype=DTYPE)
    index_leftout = _fill_from_pieces(comm, array, local)

    if index_leftout < size:
        # The leftover elements (at most P - 1) use a seed every rank shares.
        shared = np.random.default_rng(range_max - range_min + comm.size)
        array[index_leftout:] = shared.integers(
            range_min, range_max, size=size - index_leftout, endpoint=True, dtype=DTYPE
        )
    return array


def array_init_from_file(comm: Communicator, size: int, file_path: str) -> np.ndarray:
    """Read ``size`` native-endian int32 values from a headerless binary file."""
    array = safe_alloc(comm, size)
    local_size = size // comm.size

    error = None
    local = np.empty(0, dtype=DTYPE)
    available = os.path.getsize(file_path) // ITEM_SIZE if os.path.isfile(file_path) else -1
    if available < 0:
        error = ConfigurationError(f"input file {file_path!r} does not exist")
    elif available < size:
        error = ConfigurationError(f"input file {file_path!r} holds {available} integers, {size} requested")
    else:
        local = np.fromfile(file_path, dtype=DTYPE, count=local_size, offset=comm.rank * local_size * ITEM_SIZE)
    check_group(comm, error)

    index_leftout = _fill_from_pieces(comm, array, local)
    if index_leftout < size:
        array[index_leftout:] = np.fromfile(
            file_path, dtype=DTYPE, count=size - index_leftout, offset=index_leftout * ITEM_SIZE
        )
    return array


def write_numbers(
    file_path: str, size: int, range_min: int, range_max: int, seed: Optional[int] = None
) -> np.ndarray:
    """Write ``size`` random int32 values in ``[range_min, range_max]`` to ``file_path``."""
    if size < 1:
        raise ResourceError(f"can not write {size} integers")
    if range_max <= range_min:
        raise ConfigurationError(f"can't have range max <= range min ({range_max} <= {range_min})")
    rng = np.random.default_rng(seed)
    values = rng.integers(range_min, range_max, size=size, endpoint=True, dtype=DTYPE)
    directory = os.path.dirname(file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    values.tofile(file_path)
    return values


def elements_in_range(array: np.ndarray, range_min: int, range_max: int) -> bool:
    if len(array) == 0:
        return True
    return bool(array.min() >= range_min and array.max() <= range_max)
