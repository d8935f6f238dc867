"""Parsing of configuration values and formatting of the version string."""

from __future__ import annotations

_TRUE_STRINGS = frozenset({"yes", "enabled", "enable", "on", "true", "1"})
_FALSE_STRINGS = frozenset({"no", "disabled", "disable", "off", "false", "0"})


def parse_bool(value: str, empty_value: bool) -> bool:
    """Convert a truthy or falsey string to a bool.

    The empty string gives empty_value; anything unrecognised raises ValueError.
    """
    lowered = value.lower()
    if lowered == "":
        return empty_value
    if lowered in _TRUE_STRINGS:
        return True
    if lowered in _FALSE_STRINGS:
        return False
    raise ValueError(f"invalid bool string '{value}'")


def format_version(version: str, date: str, commit: str) -> str:
    """Return the text shown for a build's version."""
    if version == "dev":
        return "dev build"
    return f"v{version} ({date} - {commit})"