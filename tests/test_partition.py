"""Tests for the two partition schemes."""

import pytest

from parallel_counting import COUNT_SCHEME, RANGE_SCHEME, owned_slices, partition

SIZES = [1, 3, 7, 10, 100, 6053, 500009]
GROUPS = [1, 2, 3, 4, 7, 16]


def covered_indices(n, size, scheme):
    covered = []
    for rank in range(size):
        for owned in owned_slices(n, size, rank, scheme):
            covered.extend(range(owned.start, owned.stop))
    return covered


class TestCoverage:
    """Every index is owned by exactly one rank."""

    @pytest.mark.parametrize("scheme", [RANGE_SCHEME, COUNT_SCHEME])
    @pytest.mark.parametrize("size", GROUPS)
    @pytest.mark.parametrize("n", [1, 3, 7, 10, 100, 6053])
    def test_no_gaps_no_overlaps(self, n, size, scheme):
        covered = covered_indices(n, size, scheme)
        assert sorted(covered) == list(range(n))

    @pytest.mark.parametrize("scheme", [RANGE_SCHEME, COUNT_SCHEME])
    def test_large_prime_size(self, scheme):
        n, size = 500009, 7
        lengths = sum(s.stop - s.start for r in range(size) for s in owned_slices(n, size, r, scheme))
        assert lengths == n
        bounds = sorted((s.start, s.stop) for r in range(size) for s in owned_slices(n, size, r, scheme))
        assert bounds[0][0] == 0
        assert bounds[-1][1] == n
        for (_, stop), (start, _) in zip(bounds, bounds[1:]):
            assert stop == start


class TestRangeScheme:
    def test_rank_zero_owns_last_block_and_leftover(self):
        # L = 2, rem = 1
        assert partition(7, 3, 0, RANGE_SCHEME) == (4, 3)
        assert partition(7, 3, 1, RANGE_SCHEME) == (0, 2)
        assert partition(7, 3, 2, RANGE_SCHEME) == (2, 2)

    def test_single_rank_owns_everything(self):
        assert partition(10, 1, 0, RANGE_SCHEME) == (0, 10)

    def test_fewer_elements_than_ranks(self):
        # L = 0: only rank 0 has work
        assert partition(3, 4, 0, RANGE_SCHEME) == (0, 3)
        for rank in range(1, 4):
            assert partition(3, 4, rank, RANGE_SCHEME)[1] == 0


class TestCountScheme:
    def test_rank_zero_owns_first_block_and_tail(self):
        assert partition(7, 3, 0, COUNT_SCHEME) == (0, 2)
        assert owned_slices(7, 3, 0, COUNT_SCHEME) == [slice(0, 2), slice(6, 7)]
        assert owned_slices(7, 3, 2, COUNT_SCHEME) == [slice(4, 6)]

    def test_no_tail_when_evenly_divisible(self):
        assert owned_slices(8, 4, 0, COUNT_SCHEME) == [slice(0, 2)]


def test_schemes_assign_different_blocks():
    """The range and count phases rotate which rank gets which block."""
    n, size = 10, 3
    for rank in range(size):
        assert partition(n, size, rank, RANGE_SCHEME) != partition(n, size, rank, COUNT_SCHEME)


def test_unknown_scheme():
    with pytest.raises(ValueError):
        partition(10, 2, 0, "cyclic")
