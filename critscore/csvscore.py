"""Scoring every record of a CSV file of collected signals."""

from __future__ import annotations

import csv
from collections.abc import Callable, Mapping, Sequence
from typing import TextIO

from .pq import PriorityQueue


class DuplicateColumnError(ValueError):
    """Raised when the score column already exists in the input header."""


def make_out_header(header: Sequence[str], result_column: str) -> list[str]:
    """Return header with result_column appended.

    Raises DuplicateColumnError if header already holds result_column.
    """
    if result_column in header:
        raise DuplicateColumnError(f"header already contains field {result_column}")
    return [*header, result_column]


def make_record(header: Sequence[str], row: Sequence[str]) -> dict[str, str]:
    """Map each header name to the value in the same position of row."""
    return dict(zip(header, row))


def score_csv(
    in_stream: TextIO,
    out_stream: TextIO,
    score: Callable[[Mapping[str, str]], float],
    column: str,
) -> int:
    """Score each record of in_stream and write them to out_stream.

    The output has the input header plus column, and its records are ordered
    from the highest score to the lowest. Returns the number of records written.
    """
    reader = csv.reader(in_stream)
    records = (row for row in reader if row)
    try:
        in_header = next(records)
    except StopIteration:
        raise ValueError("reading CSV header row: no data") from None

    writer = csv.writer(out_stream, lineterminator="\n")
    writer.writerow(make_out_header(in_header, column))

    queue = PriorityQueue()
    for row in records:
        if len(row) != len(in_header):
            raise csv.Error(f"record on line {reader.line_num}: wrong number of fields")
        value = score(make_record(in_header, row))
        queue.push_row([*row, f"{value:.5f}"], value)

    count = len(queue)
    while queue:
        writer.writerow(queue.pop_row())
    return count