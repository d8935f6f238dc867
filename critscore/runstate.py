"""Progress of a local work loop, kept in a JSON file for recovery."""

from __future__ import annotations

import contextlib
import json
import os
import re
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})"
)


class RunStateClearedError(Exception):
    """Raised when a cleared run state is saved or cleared again."""


def _parse_time(text: str) -> datetime:
    match = _RFC3339.fullmatch(text)
    if match is None:
        raise ValueError(f"parsing time {text!r}: not RFC 3339")
    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    frac, zone = match.group(7), match.group(8)
    micro = int(frac[:6].ljust(6, "0")) if frac else 0
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    return datetime(year, month, day, hour, minute, second, micro, tzinfo=tz)


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    frac = f"{value.microsecond:06d}".rstrip("0")
    if frac:
        text += "." + frac
    offset = value.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass
class RunState:
    """The job time, current shard and attempt count of a run."""

    job_time: datetime
    filename: str = field(default="", repr=False)
    attempt: int = 0
    shard: int = 0

    def _to_json(self) -> str:
        data = {"job-time": _format_time(self.job_time), "attempt": self.attempt, "shard": self.shard}
        return json.dumps(data, separators=(",", ":")) + "\n"

    def save(self) -> None:
        """Atomically replace the state file with the current state."""
        if not self.filename:
            raise RunStateClearedError("run state cleared")
        directory = os.path.dirname(self.filename) or "."
        base = os.path.basename(self.filename)
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f"{base}-tmp-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(self._to_json())
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.filename)
        except BaseException:
            with contextlib.suppress(OSError):
                os.remove(tmp_name)
            raise

    def clear(self) -> None:
        """Remove the state file; the state cannot be saved afterwards."""
        if not self.filename:
            raise RunStateClearedError("run state cleared")
        name, self.filename = self.filename, ""
        with contextlib.suppress(FileNotFoundError):
            os.remove(name)


def load_state(filename: str) -> RunState:
    """Load the run state from filename, or start a new one if it is missing."""
    try:
        stream = open(filename, encoding="utf-8")
    except FileNotFoundError:
        return RunState(job_time=datetime.now(timezone.utc), filename=filename)
    with stream:
        text = stream.read()

    try:
        data, _ = json.JSONDecoder().raw_decode(text.lstrip())
    except json.JSONDecodeError as exc:
        raise ValueError(f"decoding json: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("decoding json: expected an object")

    attempt = data.get("attempt", 0)
    shard = data.get("shard", 0)
    for key, value in (("attempt", attempt), ("shard", shard)):
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValueError(f"decoding json: {key} must be an integer")
    raw_time = data.get("job-time")
    if raw_time is None:
        job_time = _ZERO_TIME
    elif isinstance(raw_time, str):
        job_time = _parse_time(raw_time)
    else:
        raise ValueError("decoding json: job-time must be a string")
    return RunState(job_time=job_time, filename=filename, attempt=attempt, shard=shard)