"""
Counting sort over a local group of workers (no MPI launcher needed).

Each rank is a process (or a thread) with its own replica of the data; the
ranks talk over queues through ``group_comm.LocalCommunicator`` and run the
same distributed counting sort as the MPI version.

    python multiprocessing_counting.py 1000000 --processes 4 --verify
"""

from __future__ import annotations

import logging
import sys
from typing import List, Optional, Sequence

import numpy as np

from group_comm import ConfigurationError, CountingSortError, run_group
from parallel_counting import counting_sort, run_sort
from sort_config import RANGE_MAX, RANGE_MIN, SortConfig, build_parser, config_from_args, setup_logging

logger = logging.getLogger(__name__)


def _sort_replica(comm, data: np.ndarray, range_min: int, range_max: int) -> np.ndarray:
    array = np.array(data, dtype=np.int32)  # this rank's own copy
    return counting_sort(array, comm, range_min, range_max)


def _run_configured(comm, config: SortConfig) -> Optional[str]:
    return run_sort(config, comm)


def parallel_counting_sort(
    A: Sequence[int],
    processes: int = 4,
    backend: str = "process",
    range_min: int = RANGE_MIN,
    range_max: int = RANGE_MAX,
) -> List[np.ndarray]:
    """Sort ``A`` with a group of ``processes`` ranks; return every rank's replica."""
    if len(A) == 0:
        return [np.empty(0, dtype=np.int32) for _ in range(processes)]
    data = np.asarray(A, dtype=np.int32)
    return run_group(_sort_replica, processes, data, range_min, range_max, backend=backend)


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging(rank=0)
    parser = build_parser("Counting sort over a local process group")
    parser.add_argument("--processes", type=int, default=4, help="Number of ranks in the group.")
    parser.add_argument("--backend", choices=("process", "thread"), default="process", help="How ranks are run.")

    try:
        args = parser.parse_args(argv)
        config = config_from_args(args)
        if args.processes < 1:
            raise ConfigurationError(f"need at least one process, got {args.processes}")
        records = run_group(_run_configured, args.processes, config, backend=args.backend)
    except CountingSortError as exc:
        logger.error("%s", exc)
        return 1

    print(records[0])
    return 0


if __name__ == "__main__":
    sys.exit(main())
