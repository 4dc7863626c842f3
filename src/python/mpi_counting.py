"""
MPI-based counting sort using mpi4py.

Run with something like:
    mpiexec -n 4 python mpi_counting.py 100000 --verify
    mpiexec -n 4 python mpi_counting.py 20000000 --input data/numbers.dat
"""

from __future__ import annotations

import logging
import sys
from typing import Any, List, Optional

from mpi4py import MPI

from group_comm import ConfigurationError, CountingSortError, GroupAborted
from parallel_counting import run_sort
from sort_config import build_parser, config_from_args, setup_logging

logger = logging.getLogger(__name__)


class MPICommunicator:
    """Communicator backed by an mpi4py communicator (pickle-based calls)."""

    def __init__(self, comm: MPI.Comm = MPI.COMM_WORLD) -> None:
        self.comm = comm
        self.rank = comm.Get_rank()
        self.size = comm.Get_size()

    def send(self, obj: Any, dest: int, tag: int = 0) -> None:
        self.comm.send(obj, dest=dest, tag=tag)

    def recv(self, source: int, tag: int = 0) -> Any:
        return self.comm.recv(source=source, tag=tag)

    def bcast(self, obj: Any, root: int = 0) -> Any:
        return self.comm.bcast(obj, root=root)

    def allgather(self, obj: Any) -> List[Any]:
        return self.comm.allgather(obj)

    def allreduce_min(self, value: Any) -> Any:
        return self.comm.allreduce(value, op=MPI.MIN)

    def allreduce_max(self, value: Any) -> Any:
        return self.comm.allreduce(value, op=MPI.MAX)

    def barrier(self) -> None:
        self.comm.barrier()

    def abort(self, exc: BaseException) -> None:
        logger.error("rank %d aborting MPI job: %s", self.rank, exc)
        self.comm.Abort(1)


def main(argv: Optional[List[str]] = None) -> int:
    comm = MPICommunicator(MPI.COMM_WORLD)
    setup_logging(comm.rank)

    try:
        args = build_parser("MPI counting sort").parse_args(argv)
        record = run_sort(config_from_args(args), comm)
    except CountingSortError as exc:
        # Argument and range errors are the same on every rank.
        if comm.rank == 0 or not isinstance(exc, (ConfigurationError, GroupAborted)):
            logger.error("%s", exc)
        # Let every rank get here before the group goes down.
        comm.barrier()
        return 1
    except Exception as exc:
        # Peers may be blocked in a collective; only Abort can release them.
        comm.abort(exc)
        return 1

    if record is not None:
        print(record)
    return 0


if __name__ == "__main__":
    sys.exit(main())
