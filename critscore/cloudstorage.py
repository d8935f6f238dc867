"""Blob storage addressed by URL: local directories and in-memory buckets."""

from __future__ import annotations

import os
import posixpath
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import parse_qsl, quote, unquote, urlencode

FILE_SCHEME = "file"
MEM_SCHEME = "mem"

_FILE_QUERY_KEYS = frozenset({"metadata"})


class CloudStorageError(Exception):
    """Raised when a bucket or blob cannot be opened, read or written."""


@dataclass
class _URL:
    scheme: str = ""
    opaque: str = ""
    userinfo: str | None = None
    host: str = ""
    path: str = ""
    query: str = ""
    fragment: str = ""

    def is_abs(self) -> bool:
        return self.scheme != ""

    def __str__(self) -> str:
        parts: list[str] = []
        if self.scheme:
            parts.append(self.scheme + ":")
        if self.opaque:
            parts.append(self.opaque)
        else:
            if self.scheme or self.host or self.userinfo is not None:
                if self.host or self.path or self.userinfo is not None:
                    parts.append("//")
                if self.userinfo is not None:
                    parts.append(self.userinfo + "@")
                parts.append(self.host)
            escaped = quote(self.path, safe="/:@!$&'()*+,;=-._~")
            if escaped and not escaped.startswith("/") and self.host:
                parts.append("/")
            if not parts:
                first, _, _ = escaped.partition("/")
                if ":" in first:
                    parts.append("./")
            parts.append(escaped)
        if self.query:
            parts.append("?" + self.query)
        if self.fragment:
            parts.append("#" + self.fragment)
        return "".join(parts)


def _split_scheme(raw: str) -> tuple[str, str]:
    for i, char in enumerate(raw):
        if char.isascii() and char.isalpha():
            continue
        if char.isascii() and (char.isdigit() or char in "+-."):
            if i == 0:
                return "", raw
            continue
        if char == ":":
            if i == 0:
                raise ValueError("missing protocol scheme")
            return raw[:i].lower(), raw[i + 1 :]
        return "", raw
    return "", raw


def _parse_url(raw: str) -> _URL:
    """Parse a URL, rejecting the same malformed forms as a strict parser would."""
    rest, _, fragment = raw.partition("#")
    scheme, rest = _split_scheme(rest)
    rest, _, query = rest.partition("?")

    if not rest.startswith("/"):
        if scheme:
            return _URL(scheme=scheme, opaque=rest, query=query, fragment=fragment)
        colon = rest.find(":")
        slash = rest.find("/")
        if colon >= 0 and (slash < 0 or colon < slash):
            raise ValueError("first path segment in URL cannot contain colon")

    url = _URL(scheme=scheme, query=query, fragment=fragment)
    if (scheme or not rest.startswith("///")) and rest.startswith("//"):
        authority, slash, remainder = rest[2:].partition("/")
        rest = slash + remainder
        userinfo, at, host = authority.rpartition("@")
        url.userinfo = userinfo if at else None
        url.host = host
    url.path = unquote(rest)
    return url


def parse_bucket_and_prefix(raw_url: str) -> tuple[str, str]:
    """Split a blob URL into the URL of its bucket and the key within it.

    A URL with neither scheme nor host is taken to be a local file path.
    """
    try:
        url = _parse_url(raw_url)
    except ValueError as exc:
        raise CloudStorageError(f"url parse: {exc}") from exc

    if not url.is_abs():
        if url.host:
            raise CloudStorageError(f"undefined blob scheme: {url}")
        url.scheme = FILE_SCHEME
        if not url.path.startswith("/"):
            url.host = "."
        params: dict[str, list[str]] = {}
        for key, value in parse_qsl(url.query, keep_blank_values=True):
            params.setdefault(key, []).append(value)
        params["metadata"] = ["skip"]
        url.query = urlencode(sorted(params.items()), doseq=True)

    if url.scheme == FILE_SCHEME:
        cut = url.path.rfind("/") + 1
        url.path, prefix = url.path[:cut], url.path[cut:]
    else:
        prefix = url.path.removeprefix("/")
        url.path = ""

    return str(url), prefix


def _check_key(key: str) -> None:
    if not key:
        raise CloudStorageError("invalid blob key: empty")
    parts = key.split("/")
    if key.startswith("/") or "\\" in key or any(p in ("", ".", "..") for p in parts):
        raise CloudStorageError(f"invalid blob key: {key!r}")


class _Bucket:
    def read(self, key: str) -> bytes:
        raise NotImplementedError

    def write(self, key: str, data: bytes) -> None:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def keys(self) -> list[str]:
        raise NotImplementedError


class _FileBucket(_Bucket):
    def __init__(self, directory: str) -> None:
        self._root = Path(directory)
        if not self._root.is_dir():
            raise CloudStorageError(f"bucket directory {directory!r} does not exist")

    def _path(self, key: str) -> Path:
        _check_key(key)
        return self._root.joinpath(*key.split("/"))

    def read(self, key: str) -> bytes:
        try:
            return self._path(key).read_bytes()
        except OSError as exc:
            raise CloudStorageError(f"reading blob {key!r}: {exc}") from exc

    def write(self, key: str, data: bytes) -> None:
        target = self._path(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.tmp-")
        except OSError as exc:
            raise CloudStorageError(f"writing blob {key!r}: {exc}") from exc
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, target)
        except OSError as exc:
            try:
                os.remove(tmp_name)
            except OSError:
                pass
            raise CloudStorageError(f"writing blob {key!r}: {exc}") from exc

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def keys(self) -> list[str]:
        found = []
        for dirpath, _dirnames, filenames in os.walk(self._root):
            rel_dir = Path(dirpath).relative_to(self._root).as_posix()
            for name in filenames:
                found.append(name if rel_dir == "." else posixpath.join(rel_dir, name))
        return sorted(found)


_MEMORY: dict[str, dict[str, bytes]] = {}
_MEMORY_LOCK = threading.Lock()


class _MemBucket(_Bucket):
    def __init__(self, name: str) -> None:
        with _MEMORY_LOCK:
            self._blobs = _MEMORY.setdefault(name, {})

    def read(self, key: str) -> bytes:
        _check_key(key)
        with _MEMORY_LOCK:
            try:
                return self._blobs[key]
            except KeyError:
                raise CloudStorageError(f"blob {key!r} not found") from None

    def write(self, key: str, data: bytes) -> None:
        _check_key(key)
        with _MEMORY_LOCK:
            self._blobs[key] = bytes(data)

    def exists(self, key: str) -> bool:
        _check_key(key)
        with _MEMORY_LOCK:
            return key in self._blobs

    def keys(self) -> list[str]:
        with _MEMORY_LOCK:
            return sorted(self._blobs)


def _open_bucket(bucket_url: str) -> _Bucket:
    try:
        url = _parse_url(bucket_url)
    except ValueError as exc:
        raise CloudStorageError(f"url parse: {exc}") from exc

    if not url.is_abs():
        if url.host:
            raise CloudStorageError(f"undefined blob scheme: {url}")
        return _FileBucket(url.path or ".")

    if url.scheme == FILE_SCHEME:
        unknown = {k for k, _ in parse_qsl(url.query, keep_blank_values=True)} - _FILE_QUERY_KEYS
        if unknown:
            raise CloudStorageError(f"failed opening {bucket_url}: unknown query parameters {sorted(unknown)}")
        if url.host not in ("", "."):
            raise CloudStorageError(f"failed opening {bucket_url}: file URL host must be empty or '.'")
        directory = url.path
        if url.host == ".":
            directory = "." + directory if directory.startswith("/") else directory or "."
        return _FileBucket(directory)

    if url.scheme == MEM_SCHEME:
        return _MemBucket(url.host)

    raise CloudStorageError(f"failed opening {bucket_url}: unsupported blob scheme {url.scheme!r}")


class BlobWriter:
    """Buffers data for a blob and stores it atomically when closed."""

    def __init__(self, bucket: _Bucket, key: str) -> None:
        self._bucket = bucket
        self._key = key
        self._chunks: list[bytes] = []
        self._closed = False

    def write(self, data: str | bytes) -> int:
        if self._closed:
            raise CloudStorageError("write to closed blob writer")
        chunk = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        self._chunks.append(chunk)
        return len(chunk)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bucket.write(self._key, b"".join(self._chunks))

    def _discard(self) -> None:
        self._closed = True
        self._chunks.clear()

    def __enter__(self) -> BlobWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self._discard()


def new_writer(raw_url: str) -> BlobWriter:
    """Open a writer for the blob named by a full blob URL or local path."""
    bucket_url, prefix = parse_bucket_and_prefix(raw_url)
    bucket = _open_bucket(bucket_url)
    try:
        _check_key(prefix)
    except CloudStorageError as exc:
        raise CloudStorageError(f"failed creating writer for {raw_url}: {exc}") from exc
    return BlobWriter(bucket, prefix)


def write_blob(bucket_url: str, key: str, data: str | bytes) -> None:
    """Store data under key in the bucket."""
    payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    _open_bucket(bucket_url).write(key, payload)


def read_blob(bucket_url: str, key: str) -> bytes:
    """Return the content stored under key in the bucket."""
    return _open_bucket(bucket_url).read(key)


def blob_exists(bucket_url: str, key: str) -> bool:
    """Report whether a blob is stored under key in the bucket."""
    return _open_bucket(bucket_url).exists(key)


def list_keys(bucket_url: str, prefix: str = "") -> list[str]:
    """Return the sorted keys in the bucket that start with prefix."""
    return [k for k in _open_bucket(bucket_url).keys() if k.startswith(prefix)]