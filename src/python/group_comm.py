"""
Message passing for a fixed group of cooperating workers.

The counting sort is written against the small ``Communicator`` protocol
below. Under ``mpiexec`` it is backed by mpi4py (see ``mpi_counting.py``);
locally it is backed by ``LocalCommunicator``: one task per rank, one inbox
queue per rank, collectives built as fan-out/fan-in over those queues.

Every collective must be called by every rank of the group, in the same
program order, or the remaining ranks block.
"""

from __future__ import annotations

import copy
import logging
import multiprocessing as mp
import queue
import threading
from typing import Any, Callable, List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

# Reserved tags for collectives; user traffic uses tags >= 0.
BCAST_TAG = -1
ALLGATHER_TAG = -2

# How often a blocked receive wakes up to look at the abort flag.
POLL_INTERVAL = 0.05

# Grace period for rank processes to exit once the group has aborted.
ABORT_JOIN_TIMEOUT = 5.0


class CountingSortError(Exception):
    """Base class for fatal errors of the sorting group."""


class ResourceError(CountingSortError):
    """Memory could not be allocated, or a non-positive size was requested."""


class ConfigurationError(CountingSortError):
    """Invalid range bounds, arguments or input file."""


class GroupAborted(CountingSortError):
    """Raised on a rank whose peer failed while the group was running."""


class Communicator(Protocol):
    """What a worker needs from its process group."""

    rank: int
    size: int

    def send(self, obj: Any, dest: int, tag: int = 0) -> None:
        ...

    def recv(self, source: int, tag: int = 0) -> Any:
        ...

    def bcast(self, obj: Any, root: int = 0) -> Any:
        ...

    def allgather(self, obj: Any) -> List[Any]:
        ...

    def allreduce_min(self, value: Any) -> Any:
        ...

    def allreduce_max(self, value: Any) -> Any:
        ...

    def barrier(self) -> None:
        ...

    def abort(self, exc: BaseException) -> None:
        ...


def check_group(comm: Communicator, error: Optional[BaseException] = None) -> None:
    """Agree on failure across the whole group.

    Every rank contributes its local error (or None). If any rank failed,
    every rank raises: its own error if it has one, otherwise GroupAborted.
    No rank returns or raises before all ranks have reported.
    """
    reports = comm.allgather(None if error is None else f"{type(error).__name__}: {error}")
    failed = [rank for rank, report in enumerate(reports) if report is not None]
    if not failed:
        return
    if error is not None:
        raise error
    details = "; ".join(f"rank {r}: {reports[r]}" for r in failed)
    raise GroupAborted(f"aborted because of failure on rank(s) {failed} ({details})")


class LocalCommunicator:
    """Communicator for one rank of a group of local threads or processes.

    ``inboxes[r]`` is the channel every other rank writes to when talking to
    rank ``r``. Messages from one sender arrive in the order they were sent;
    a receive takes the first pending message matching ``(source, tag)``.
    """

    def __init__(self, rank: int, inboxes: Sequence[Any], abort_event: Any, copy_payloads: bool = True) -> None:
        self.rank = rank
        self.size = len(inboxes)
        self._inboxes = inboxes
        self._abort_event = abort_event
        self._copy_payloads = copy_payloads
        self._pending: List[tuple] = []

    def send(self, obj: Any, dest: int, tag: int = 0) -> None:
        if self._abort_event.is_set():
            raise GroupAborted(f"rank {self.rank}: group aborted before send to rank {dest}")
        # Threads share memory, so the receiver must get its own copy.
        payload = copy.deepcopy(obj) if self._copy_payloads else obj
        self._inboxes[dest].put((self.rank, tag, payload))

    def recv(self, source: int, tag: int = 0) -> Any:
        for i, (src, msg_tag, payload) in enumerate(self._pending):
            if src == source and msg_tag == tag:
                del self._pending[i]
                return payload

        inbox = self._inboxes[self.rank]
        while True:
            try:
                src, msg_tag, payload = inbox.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                if self._abort_event.is_set():
                    raise GroupAborted(
                        f"rank {self.rank}: group aborted while waiting on rank {source} (tag {tag})"
                    ) from None
                continue
            if src == source and msg_tag == tag:
                return payload
            self._pending.append((src, msg_tag, payload))

    def bcast(self, obj: Any, root: int = 0) -> Any:
        if self.rank == root:
            for dest in range(self.size):
                if dest != root:
                    self.send(obj, dest, BCAST_TAG)
            return obj
        return self.recv(root, BCAST_TAG)

    def allgather(self, obj: Any) -> List[Any]:
        for dest in range(self.size):
            if dest != self.rank:
                self.send(obj, dest, ALLGATHER_TAG)
        return [obj if src == self.rank else self.recv(src, ALLGATHER_TAG) for src in range(self.size)]

    def allreduce_min(self, value: Any) -> Any:
        return min(self.allgather(value))

    def allreduce_max(self, value: Any) -> Any:
        return max(self.allgather(value))

    def barrier(self) -> None:
        self.allgather(None)

    def abort(self, exc: BaseException) -> None:
        logger.error("rank %d aborting group: %s", self.rank, exc)
        self._abort_event.set()

    def release_channels(self) -> None:
        """Let this process exit even if peers never read what it sent."""
        for inbox in self._inboxes:
            cancel = getattr(inbox, "cancel_join_thread", None)
            if cancel is not None:
                cancel()


def _run_rank(target: Callable, comm: LocalCommunicator, args: tuple, results: Any) -> None:
    try:
        value = target(comm, *args)
    except BaseException as exc:  # reported to the launcher, then re-raised there
        if not isinstance(exc, GroupAborted):
            comm.abort(exc)
        comm.release_channels()
        results.put((comm.rank, False, exc))
    else:
        results.put((comm.rank, True, value))


def run_group(target: Callable, size: int, *args: Any, backend: str = "thread") -> List[Any]:
    """Run ``target(comm, *args)`` once per rank and return results by rank.

    ``backend`` is ``"thread"`` (ranks share this interpreter) or
    ``"process"`` (one ``multiprocessing`` process per rank; ``target`` and
    its arguments must be picklable). If any rank raises, the whole group is
    aborted and the first non-GroupAborted error is raised here.
    """
    if size < 1:
        raise ConfigurationError(f"group size must be positive, got {size}")

    if backend == "thread":
        inboxes = [queue.Queue() for _ in range(size)]
        abort_event = threading.Event()
        results: Any = queue.Queue()
        workers = [
            threading.Thread(
                target=_run_rank,
                args=(target, LocalCommunicator(r, inboxes, abort_event), args, results),
                name=f"rank-{r}",
                daemon=True,
            )
            for r in range(size)
        ]
    elif backend == "process":
        ctx = mp.get_context()
        inboxes = [ctx.Queue() for _ in range(size)]
        abort_event = ctx.Event()
        results = ctx.Queue()
        # Payloads are pickled through the queues, so no extra copy.
        workers = [
            ctx.Process(
                target=_run_rank,
                args=(target, LocalCommunicator(r, inboxes, abort_event, copy_payloads=False), args, results),
                name=f"rank-{r}",
            )
            for r in range(size)
        ]
    else:
        raise ConfigurationError(f"unknown backend {backend!r} (expected 'thread' or 'process')")

    for worker in workers:
        worker.start()

    # Drain results before joining: a process cannot exit while its queue
    # still holds unflushed data.
    collected = {}
    for _ in range(size):
        rank, ok, value = results.get()
        collected[rank] = (ok, value)

    errors = [collected[r][1] for r in range(size) if not collected[r][0]]

    for worker in workers:
        worker.join(ABORT_JOIN_TIMEOUT if errors and backend == "process" else None)
        if backend == "process" and worker.is_alive():
            logger.warning("terminating %s after group abort", worker.name)
            worker.terminate()
            worker.join()

    if errors:
        root_causes = [e for e in errors if not isinstance(e, GroupAborted)]
        raise (root_causes or errors)[0]
    return [collected[r][1] for r in range(size)]
