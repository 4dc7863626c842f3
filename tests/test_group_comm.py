"""Tests for the local message-passing group."""

import time

import numpy as np
import pytest

from group_comm import (
    ConfigurationError,
    GroupAborted,
    ResourceError,
    check_group,
    run_group,
)


def _ranks(comm):
    return comm.rank, comm.size


def _gather(comm):
    return comm.allgather(comm.rank * 10)


def _reduce(comm):
    return comm.allreduce_min(comm.rank + 5), comm.allreduce_max(comm.rank + 5)


def _bcast_array(comm):
    data = np.arange(5) if comm.rank == 0 else None
    data = comm.bcast(data, root=0)
    if comm.rank == 1:
        data[0] = 99  # must not leak into other ranks
    comm.barrier()
    return data


def _out_of_order(comm):
    if comm.rank == 1:
        comm.send("first", dest=0, tag=7)
        comm.send("second", dest=0, tag=3)
        return None
    if comm.rank == 0:
        # Ask for the later message first; the earlier one must be kept.
        second = comm.recv(source=1, tag=3)
        first = comm.recv(source=1, tag=7)
        return first, second
    return None


def _fail_on_rank_one(comm):
    if comm.rank == 1:
        raise ResourceError("out of memory on rank 1")
    # The other ranks block on a message that never comes.
    return comm.recv(source=1, tag=0)


def _send_then_fail(comm):
    if comm.rank == 1:
        comm.send(np.zeros(100_001, dtype=np.int64), dest=0, tag=2)
        return comm.recv(source=0, tag=3)
    # Rank 0 fails before reading what rank 1 sent.
    time.sleep(0.5)
    raise ResourceError("out of memory on rank 0")


def _agree(comm, failing_rank):
    error = ResourceError("boom") if comm.rank == failing_rank else None
    check_group(comm, error)
    return "ok"


def _agree_and_report(comm, failing_rank):
    try:
        _agree(comm, failing_rank)
    except ResourceError:
        return "local"
    except GroupAborted:
        return "aborted"
    return "ok"


class TestCollectives:
    def test_rank_and_size(self):
        assert run_group(_ranks, 3) == [(0, 3), (1, 3), (2, 3)]

    def test_allgather_in_rank_order(self):
        results = run_group(_gather, 4)
        assert all(r == [0, 10, 20, 30] for r in results)

    def test_allreduce_same_everywhere(self):
        assert run_group(_reduce, 4) == [(5, 8)] * 4

    def test_bcast_copies_payload(self):
        results = run_group(_bcast_array, 3)
        np.testing.assert_array_equal(results[0], np.arange(5))
        np.testing.assert_array_equal(results[2], np.arange(5))
        assert results[1][0] == 99

    def test_recv_matches_source_and_tag(self):
        results = run_group(_out_of_order, 2)
        assert results[0] == ("first", "second")

    def test_single_rank_group(self):
        assert run_group(_gather, 1) == [[0]]


class TestFailure:
    def test_failure_aborts_blocked_peers(self):
        """A raising rank must not leave the others waiting forever."""
        with pytest.raises(ResourceError, match="rank 1"):
            run_group(_fail_on_rank_one, 3)

    def test_failure_with_unread_message_process_backend(self):
        """A rank process whose message was never read must still exit."""
        with pytest.raises(ResourceError, match="rank 0"):
            run_group(_send_then_fail, 2, backend="process")

    def test_check_group_passes_when_all_ok(self):
        assert run_group(_agree, 3, -1) == ["ok"] * 3

    def test_check_group_raises_everywhere(self):
        assert run_group(_agree_and_report, 4, 2) == ["aborted", "aborted", "local", "aborted"]

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            run_group(_ranks, 2, backend="gpu")

    def test_empty_group(self):
        with pytest.raises(ConfigurationError):
            run_group(_ranks, 0)
