#!/usr/bin/env python3
"""
Generate a log-log performance comparison SVG from collected timing records.

Each input line is a record printed by the entry points,
``size;num_workers;time_init;time_sort;time_total;`` (num_workers 0 is the
sequential run). No plotting dependencies required.

    mpiexec -n 4 python src/python/mpi_counting.py 1000000 >> docs/performance_log.txt
    python scripts/generate_performance_svg.py docs/performance_log.txt

Output: docs/img/performance_comparison.svg
"""

import argparse
import math
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Tuple

from sort_config import parse_record

PALETTE = ["#d62728", "#1f77b4", "#2ca02c", "#ff7f0e", "#9467bd", "#8c564b", "#e377c2", "#17becf"]


def log10(x: float) -> float:
    if x <= 0:
        raise ValueError("Values must be positive for log10 axis")
    return math.log10(x)


def series_name(num_workers: int) -> str:
    return "sequential" if num_workers == 0 else f"{num_workers} workers"


def load_series(path: Path) -> Dict[str, List[Tuple[int, float]]]:
    """Mean sort time per size, one series per worker count."""
    samples: Dict[int, Dict[int, List[float]]] = defaultdict(lambda: defaultdict(list))
    for line in path.read_text().splitlines():
        if not line.strip():
            continue
        size, workers, _, time_sort, _ = parse_record(line)
        samples[int(workers)][int(size)].append(time_sort)

    data = {}
    for workers in sorted(samples):
        points = [(n, sum(ts) / len(ts)) for n, ts in sorted(samples[workers].items())]
        # Zero timings can't go on a log axis.
        data[series_name(workers)] = [(n, t) for n, t in points if t > 0]
    return {name: series for name, series in data.items() if series}


def render(data: Dict[str, List[Tuple[int, float]]]) -> str:
    colors = {name: PALETTE[i % len(PALETTE)] for i, name in enumerate(data)}

    sizes = [n for series in data.values() for n, _ in series]
    times = [t for series in data.values() for _, t in series]
    x_min, x_max = log10(min(sizes)), log10(max(sizes))
    if x_max == x_min:
        x_min -= 0.5
        x_max += 0.5
    y_pad = 0.2
    y_min = min(log10(t) for t in times) - y_pad
    y_max = max(log10(t) for t in times) + y_pad

    width, height = 900, 560
    margin_left, margin_bottom, margin_top, margin_right = 120, 80, 60, 40

    def scale_x(n: float) -> float:
        return margin_left + (log10(n) - x_min) / (x_max - x_min) * (width - margin_left - margin_right)

    def scale_y(t: float) -> float:
        return height - margin_bottom - (log10(t) - y_min) / (y_max - y_min) * (height - margin_bottom - margin_top)

    parts = []
    parts.append(f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" viewBox="0 0 {width} {height}">')
    parts.append('<style>text { font-family: sans-serif; font-size: 13px; }</style>')

    # Axes
    x0, y0 = margin_left, height - margin_bottom
    x1, y1 = width - margin_right, height - margin_bottom
    parts.append(f'<line x1="{x0}" y1="{y0}" x2="{x1}" y2="{y1}" stroke="black" stroke-width="1.5" />')
    parts.append(f'<line x1="{x0}" y1="{margin_top}" x2="{x0}" y2="{y0}" stroke="black" stroke-width="1.5" />')

    # X ticks (dataset sizes)
    for n in sorted(set(sizes)):
        x = scale_x(n)
        parts.append(f'<line x1="{x}" y1="{y0}" x2="{x}" y2="{y0 + 6}" stroke="black" />')
        parts.append(f'<text x="{x}" y="{y0 + 24}" text-anchor="middle">{n:,}</text>')

    # Y ticks (times, logarithmic)
    for t in (0.0001, 0.001, 0.01, 0.1, 1, 10, 100, 1000):
        if log10(t) < y_min or log10(t) > y_max:
            continue
        y = scale_y(t)
        parts.append(f'<line x1="{x0 - 6}" y1="{y}" x2="{x0}" y2="{y}" stroke="black" />')
        parts.append(f'<text x="{x0 - 10}" y="{y + 4}" text-anchor="end">{t:g}s</text>')

    parts.append(f'<text x="{width/2}" y="{margin_top - 20}" text-anchor="middle" font-size="18">Counting Sort Performance (log-log)</text>')
    parts.append(f'<text x="{(x0 + x1)/2}" y="{height - 20}" text-anchor="middle">Input size (n)</text>')
    parts.append(f'<text x="25" y="{(margin_top + y0)/2}" text-anchor="middle" transform="rotate(-90 25 {(margin_top + y0)/2})">Sort time (seconds, log scale)</text>')

    for name, series in data.items():
        color = colors[name]
        coords = [f"{scale_x(n):.2f},{scale_y(t):.2f}" for n, t in series]
        parts.append(f'<polyline fill="none" stroke="{color}" stroke-width="2" points="{" ".join(coords)}" />')
        for n, t in series:
            parts.append(
                f'<circle cx="{scale_x(n):.2f}" cy="{scale_y(t):.2f}" r="4" fill="{color}" stroke="white" stroke-width="1.5">'
                f'<title>{name}: n={n:,}, t={t:.5f}s</title></circle>'
            )

    # Legend
    legend_x, legend_y = width - margin_right - 200, margin_top + 10
    line_height = 22
    parts.append(f'<rect x="{legend_x - 10}" y="{legend_y - 14}" width="180" height="{len(data)*line_height + 10}" fill="#f8f8f8" stroke="#ccc" />')
    for i, (name, color) in enumerate(colors.items()):
        y = legend_y + i * line_height
        parts.append(f'<line x1="{legend_x}" y1="{y}" x2="{legend_x + 24}" y2="{y}" stroke="{color}" stroke-width="3" />')
        parts.append(f'<circle cx="{legend_x + 12}" cy="{y}" r="4" fill="{color}" stroke="white" stroke-width="1.5" />')
        parts.append(f'<text x="{legend_x + 36}" y="{y + 5}" >{name}</text>')

    parts.append("</svg>")
    return "\n".join(parts)


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Plot counting sort timings")
    parser.add_argument("records", nargs="?", default="docs/performance_log.txt", help="File of timing records.")
    parser.add_argument("--output", default="docs/img/performance_comparison.svg")
    args = parser.parse_args(argv)

    data = load_series(Path(args.records))
    if not data:
        raise SystemExit(f"No usable records in {args.records}")

    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(render(data))
    print(f"Wrote {out_path} from {args.records}.")


if __name__ == "__main__":
    main()
