#!/usr/bin/env python3

#   Copyright (c) 2024-2026 Anton Kundenko <singaraiona@gmail.com>
#   All rights reserved.
#
#   Permission is hereby granted, free of charge, to any person obtaining a copy
#   of this software and associated documentation files (the "Software"), to deal
#   in the Software without restriction, including without limitation the rights
#   to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
#   copies of the Software, and to permit persons to whom the Software is
#   furnished to do so, subject to the following conditions:
#
#   The above copyright notice and this permission notice shall be included in all
#   copies or substantial portions of the Software.
#
#   THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
#   IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
#   FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
#   AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
#   LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
#   OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
#   SOFTWARE.

"""Benchmark tally aggregation against an equivalent DuckDB GROUP BY.

Usage:
    python3 bench_aggregate_duckdb.py [n_rows]

Writes a synthetic CSV (id1 with 100 groups, integer v1, decimal v3), runs
each query through tally and DuckDB, and checks that the group sums agree.
"""

import csv
import os
import random
import sys
import tempfile
import time
from decimal import Decimal

import duckdb

from tally.core import AggregateConfig, aggregate
from tally.io import load_csv

N_ITER = 3  # median of 3 runs

QUERIES = {
    "q1": ("id1 sum(v1)",
           "SELECT id1, SUM(v1) FROM df GROUP BY id1"),
    "q3": ("id3 sum(v1) mean(v3)",
           "SELECT id3, SUM(v1), AVG(v3) FROM df GROUP BY id3"),
    "q6": ("id3 max(v1) min(v3)",
           "SELECT id3, MAX(v1), MIN(v3) FROM df GROUP BY id3"),
    "q7": ("id1 id3 sum(v3) count()",
           "SELECT id1, id3, SUM(v3), COUNT(*) FROM df GROUP BY id1, id3"),
}


def write_dataset(path, n_rows, seed=42):
    rng = random.Random(seed)
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["id1", "id3", "v1", "v3"])
        for _ in range(n_rows):
            writer.writerow([
                f"id{rng.randint(1, 100):03d}",
                f"id{rng.randint(1, n_rows // 10 or 1):010d}",
                rng.randint(1, 5),
                f"{rng.uniform(0, 100):.6f}",
            ])


def median_time(fn):
    times = []
    result = None
    for _ in range(N_ITER):
        t0 = time.perf_counter()
        result = fn()
        times.append(time.perf_counter() - t0)
    return sorted(times)[len(times) // 2], result


def check_sums(tally_rows, duck_rows, key_cols, value_col):
    """Compare one summed column of both results keyed by group."""
    expected = {tuple(str(v) for v in row[:key_cols]): Decimal(str(row[value_col]))
                for row in duck_rows}
    for row in tally_rows:
        got = Decimal(row[value_col])
        want = expected[tuple(row[:key_cols])]
        if abs(got - want) > Decimal("1e-6") * max(1, abs(want)):
            raise AssertionError(f"Mismatch for {row[:key_cols]}: {got} != {want}")


def main():
    n_rows = int(sys.argv[1]) if len(sys.argv) > 1 else 200_000
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "groupby.csv")
        print(f"Generating {n_rows:,} rows ...")
        write_dataset(path, n_rows)

        t0 = time.perf_counter()
        table = load_csv(path)
        print(f"tally load:  {(time.perf_counter() - t0) * 1000:8.1f} ms")

        con = duckdb.connect()
        t0 = time.perf_counter()
        con.execute(f"CREATE TABLE df AS SELECT * FROM read_csv_auto('{path}')")
        print(f"duckdb load: {(time.perf_counter() - t0) * 1000:8.1f} ms")

        print(f"\n  {'Query':6s}  {'tally':>10s}  {'duckdb':>10s}  {'groups':>8s}")
        print(f"  {'-'*6}  {'-'*10}  {'-'*10}  {'-'*8}")
        for label, (cols, sql) in QUERIES.items():
            config = AggregateConfig(cols=cols)
            t_tally, result = median_time(lambda: aggregate(table, config))
            t_duck, duck_rows = median_time(lambda: con.execute(sql).fetchall())
            if label in ("q1", "q3"):
                check_sums(list(result.data_rows()), duck_rows, 1, 1)
            print(f"  {label:6s}  {t_tally*1000:8.1f} ms  {t_duck*1000:8.1f} ms  {len(result):>8,}")

        con.close()
    print("\nDone.")


if __name__ == "__main__":
    main()
