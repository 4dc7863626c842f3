"""
Single-process counting sort, the baseline the parallel versions are timed against.

    python sequential_counting.py 1000000
"""

import random
import sys
import time

from sort_config import RANGE_MAX, RANGE_MIN, format_record


def array_min_max(A):
    lo = hi = A[0]
    for v in A:
        if v < lo:
            lo = v
        elif v > hi:
            hi = v
    return lo, hi


def counting_sort(A):
    """Sort a list of integers in place."""
    if len(A) < 2:
        return A

    lo, hi = array_min_max(A)

    # one bucket per value in [lo, hi]
    C = [0] * (hi - lo + 1)

    for v in A:
        C[v - lo] += 1

    k = 0
    for i, c in enumerate(C):
        for _ in range(c):
            A[k] = lo + i
            k += 1
    return A


def array_init_random(size, range_min=RANGE_MIN, range_max=RANGE_MAX):
    return [random.randint(range_min, range_max) for _ in range(size)]


def run(size):
    """Time initialisation and sorting; worker count is reported as 0."""
    start = time.time()
    A = array_init_random(size)
    time_init = time.time() - start

    start = time.time()
    counting_sort(A)
    time_sort = time.time() - start
    return format_record(size, 0, time_init, time_sort)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("ERROR! usage: sequential_counting.py array_size", file=sys.stderr)
        return 1
    if RANGE_MAX <= RANGE_MIN:
        print("ERROR! can't have RANGE_MAX <= RANGE_MIN.", file=sys.stderr)
        return 1
    try:
        size = int(argv[0])
    except ValueError:
        print(f"ERROR! array_size must be an integer, got {argv[0]!r}", file=sys.stderr)
        return 1
    if size < 1:
        print(f"Can not allocate memory of {size * 4} bytes.", file=sys.stderr)
        return 1
    print(run(size))
    return 0


if __name__ == "__main__":
    sys.exit(main())
