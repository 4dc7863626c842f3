"""Defaults, argument parsing, logging and timing shared by the entry points."""

from __future__ import annotations

import argparse
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from group_comm import ConfigurationError

# Bounds of the integers accepted in the array.
RANGE_MIN = 0
RANGE_MAX = 100_000

# Binary dump of int32 values read by --input when no path is given.
INPUT_FILE_PATH = "data/numbers.dat"

LOG_FORMAT = "%(asctime)s [rank {rank}] %(levelname)s %(name)s: %(message)s"


@dataclass
class SortConfig:
    size: int
    range_min: int = RANGE_MIN
    range_max: int = RANGE_MAX
    input_path: Optional[str] = None
    seed: Optional[int] = None
    verify: bool = False

    def validate(self) -> "SortConfig":
        if self.range_max <= self.range_min:
            raise ConfigurationError(
                f"can't have range max <= range min ({self.range_max} <= {self.range_min})"
            )
        return self


class GroupArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting.

    Every rank parses the same argv, so every rank raises the same error and
    the group can shut down together.
    """

    def error(self, message: str) -> None:
        raise ConfigurationError(f"{message}\n{self.format_usage().rstrip()}")


def build_parser(description: str) -> GroupArgumentParser:
    parser = GroupArgumentParser(description=description)
    parser.add_argument("size", type=int, help="Number of integers to sort.")
    parser.add_argument(
        "--input",
        nargs="?",
        const=INPUT_FILE_PATH,
        default=None,
        help=f"Read the integers from a binary int32 file (default path: {INPUT_FILE_PATH}) instead of generating them.",
    )
    parser.add_argument("--range-min", type=int, default=RANGE_MIN, help="Smallest value generated.")
    parser.add_argument("--range-max", type=int, default=RANGE_MAX, help="Largest value generated.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducibility.")
    parser.add_argument("--verify", action="store_true", help="Check the final array is sorted on every rank.")
    return parser


def config_from_args(args: argparse.Namespace) -> SortConfig:
    return SortConfig(
        size=args.size,
        range_min=args.range_min,
        range_max=args.range_max,
        input_path=args.input,
        seed=args.seed,
        verify=args.verify,
    ).validate()


def setup_logging(rank: int, level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT.format(rank=rank))


class Stopwatch:
    """Wall-clock timer; use as ``with Stopwatch() as sw: ...`` then ``sw.elapsed``."""

    def __init__(self) -> None:
        self.elapsed = 0.0
        self._start = 0.0

    def __enter__(self) -> "Stopwatch":
        self._start = time.time()
        return self

    def __exit__(self, *exc) -> None:
        self.elapsed = time.time() - self._start


def format_record(size: int, num_workers: int, time_init: float, time_sort: float) -> str:
    """``size;num_workers;time_init;time_sort;time_total;`` with 5 decimals."""
    time_total = time_init + time_sort
    return f"{size};{num_workers};{time_init:.5f};{time_sort:.5f};{time_total:.5f};"


def parse_record(line: str) -> List[float]:
    """Inverse of format_record: ``[size, num_workers, init, sort, total]``."""
    fields = [f for f in line.strip().split(";") if f]
    if len(fields) != 5:
        raise ValueError(f"expected 5 fields in record, got {len(fields)}: {line!r}")
    size, workers = int(fields[0]), int(fields[1])
    return [size, workers] + [float(f) for f in fields[2:]]
