#!/usr/bin/env python3
"""
Write random integers onto a binary file read by ``--input``.

The file is a flat dump of native-endian int32 values, no header. Nothing is
done if the file already exists.

    python scripts/generate_numbers.py --size 20000000
"""

import argparse
import sys
from pathlib import Path

from array_init import write_numbers
from group_comm import CountingSortError
from sort_config import INPUT_FILE_PATH, RANGE_MAX, RANGE_MIN


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate the binary input file")
    parser.add_argument("--size", type=int, default=20_000_000, help="Number of integers to write.")
    parser.add_argument("--output", default=INPUT_FILE_PATH, help="Destination file.")
    parser.add_argument("--range-min", type=int, default=RANGE_MIN)
    parser.add_argument("--range-max", type=int, default=RANGE_MAX)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--force", action="store_true", help="Overwrite an existing file.")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    out_path = Path(args.output)
    if out_path.exists() and not args.force:
        print(f"{out_path} already exists, nothing to do.")
        return 0

    try:
        write_numbers(str(out_path), args.size, args.range_min, args.range_max, seed=args.seed)
    except CountingSortError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Written {args.size:,} integers in file '{out_path}'")
    return 0


if __name__ == "__main__":
    sys.exit(main())
