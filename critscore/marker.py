"""Marker files that record where enumeration results were written."""

from __future__ import annotations

import enum
import posixpath

from .cloudstorage import FILE_SCHEME, _parse_url, new_writer


class UnknownMarkerTypeError(ValueError):
    """Raised for text that names no marker type."""


def _dir(path: str) -> str:
    return posixpath.normpath(posixpath.dirname(path) or ".")


class MarkerType(enum.Enum):
    """How the output location is recorded in a marker file."""

    FULL = "full"
    FILE = "file"
    DIR = "dir"

    @classmethod
    def parse(cls, text: str) -> MarkerType:
        try:
            return cls(text)
        except ValueError:
            raise UnknownMarkerTypeError(f"unknown marker type: {text!r}") from None

    def __str__(self) -> str:
        return self.value

    def transform(self, path: str) -> str:
        """Return what a marker of this type records for the given output path."""
        if self is MarkerType.FULL:
            return path
        try:
            url = _parse_url(path)
        except ValueError:
            url = None
        if url is not None and url.is_abs():
            if url.scheme == FILE_SCHEME and url.host == "":
                path = url.path
            else:
                path = url.path.removeprefix("/")
        if self is MarkerType.DIR:
            return _dir(path)
        return path


def write_marker(marker_type: MarkerType, marker_file: str, out_file: str) -> None:
    """Write the transformed output location, followed by a newline, to marker_file."""
    with new_writer(marker_file) as marker:
        marker.write(marker_type.transform(out_file) + "\n")