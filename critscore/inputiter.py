"""Iteration over the repositories given on the command line or in a file."""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable, Iterator
from typing import TextIO

from .cloudstorage import _parse_url

_ERROR_INVALID_NAME = 123


class InputIterator:
    """Iterates over input lines and releases the underlying file on close."""

    def __init__(self, lines: Iterable[str], closer: Callable[[], None] | None = None) -> None:
        self._lines = lines
        self._closer = closer

    def __iter__(self) -> Iterator[str]:
        return iter(self._lines)

    def close(self) -> None:
        closer, self._closer = self._closer, None
        if closer is not None:
            closer()

    def __enter__(self) -> InputIterator:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _lines(stream: TextIO) -> Iterator[str]:
    for line in stream:
        yield line.rstrip("\n").removesuffix("\r")


def _open_input(name: str) -> InputIterator:
    if name == "-":
        return InputIterator(_lines(sys.stdin))
    stream = open(name, encoding="utf-8")
    return InputIterator(_lines(stream), stream.close)


def _error_with_filename(exc: OSError) -> bool:
    if isinstance(exc, FileNotFoundError):
        return True
    return getattr(exc, "winerror", None) == _ERROR_INVALID_NAME


def new_input(args: list[str]) -> InputIterator:
    """Return an iterator over the repositories named by args.

    A single argument is read as a file (or "-" for stdin); if no such file
    exists and the argument parses as a URL it is taken to be a repository.
    Two or more arguments are all taken to be repositories.
    """
    if len(args) == 1:
        file_or_repo = args[0]
        try:
            _parse_url(file_or_repo)
            url_parse_failed = False
        except ValueError:
            url_parse_failed = True
        try:
            return _open_input(file_or_repo)
        except OSError as exc:
            if url_parse_failed or not _error_with_filename(exc):
                raise
    return InputIterator(list(args))