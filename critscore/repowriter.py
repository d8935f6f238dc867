"""Writers that output lists of repository URLs in different formats."""

from __future__ import annotations

import abc
import csv
import enum
from typing import TextIO

SCORECARD_HEADER = ("repo", "metadata")


class UnknownWriterTypeError(ValueError):
    """Raised for text that names no repo writer type."""


class RepoWriter(abc.ABC):
    """Outputs repository URLs one at a time."""

    @abc.abstractmethod
    def write(self, repo: str) -> None:
        """Output a single repository URL."""


class TextWriter(RepoWriter):
    """Writes one repository URL per line."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def write(self, repo: str) -> None:
        self._stream.write(repo + "\n")


class ScorecardWriter(RepoWriter):
    """Writes a CSV of repositories with "repo" and empty "metadata" columns."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._csv = csv.writer(stream, lineterminator="\n")
        self._csv.writerow(SCORECARD_HEADER)

    def write(self, repo: str) -> None:
        self._csv.writerow((repo, ""))
        flush = getattr(self._stream, "flush", None)
        if flush is not None:
            flush()


class WriterType(enum.Enum):
    """The available output formats for repository lists."""

    TEXT = "text"
    SCORECARD = "scorecard"

    @classmethod
    def parse(cls, text: str) -> WriterType:
        try:
            return cls(text)
        except ValueError:
            raise UnknownWriterTypeError(f"unknown repo writer type: {text!r}") from None

    def __str__(self) -> str:
        return self.value

    def new(self, stream: TextIO) -> RepoWriter:
        """Create the writer for this format around stream."""
        if self is WriterType.SCORECARD:
            return ScorecardWriter(stream)
        return TextWriter(stream)