"""Aggregation of per-shard CSV files into a single CSV file."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable

SHARD_PREFIX = "shard-"


class HeaderMismatchError(ValueError):
    """Raised when a shard's header row differs from the first shard's."""


def merge_shard_csvs(shards: Iterable[tuple[str, str | bytes]]) -> tuple[str, int]:
    """Concatenate the CSV shards into one CSV with a single header row.

    shards holds (key, content) pairs; keys whose file name does not start
    with "shard-" are skipped. Returns the aggregate CSV text and the number
    of records in it.
    """
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    first_header: list[str] | None = None
    total = 0

    for key, content in shards:
        filename = key.rpartition("/")[2]
        if not filename.startswith(SHARD_PREFIX):
            continue

        text = content.decode("utf-8") if isinstance(content, bytes) else content
        rows = [row for row in csv.reader(io.StringIO(text, newline="")) if row]
        if not rows:
            raise ValueError(f"reading header row for key {key}: no data")
        header, records = rows[0], rows[1:]

        if first_header is None:
            first_header = header
            writer.writerow(header)
        if header != first_header:
            raise HeaderMismatchError(f"key {key} header does not match first header")

        for record in records:
            if len(record) != len(header):
                raise csv.Error(f"reading all records for key {key}: wrong number of fields")
        writer.writerows(records)
        total += len(records)

    return out.getvalue(), total