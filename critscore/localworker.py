"""A work loop that reads repositories from a local list and processes them in shards."""

from __future__ import annotations

import abc
import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from itertools import islice

from .cloudstorage import blob_exists, write_blob
from .runstate import load_state

MAX_ATTEMPTS = 7
"""How many times a shard is attempted before moving on to the next one."""

MISSING_COMMIT_ID = "-missing-"
HEAD_SHA = "HEAD"
SHARD_METADATA_FILENAME = ".shard_metadata"

_LOG = logging.getLogger(__name__)


def _utc(when: datetime) -> datetime:
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def blob_filename(filename: str, when: datetime) -> str:
    """Return the key of filename within the directory for a job started at when."""
    t = _utc(when)
    return (
        f"{t.year:04d}.{t.month:02d}.{t.day:02d}/"
        f"{t.hour:02d}{t.minute:02d}{t.second:02d}/{filename}"
    )


def shard_metadata_filename(when: datetime) -> str:
    """Return the key of the shard metadata file for a job started at when."""
    return blob_filename(SHARD_METADATA_FILENAME, when)


@dataclass(frozen=True)
class BatchRequest:
    """One shard of repositories to be processed by a worker."""

    job_time: datetime
    shard_num: int
    repos: tuple[str, ...]
    commit: str = HEAD_SHA


def result_filename(request: BatchRequest) -> str:
    """Return the key under which the result of request is stored."""
    return blob_filename(f"shard-{request.shard_num:07d}", request.job_time)


def make_request(repos: Iterable[str], shard_num: int, job_time: datetime) -> BatchRequest:
    """Build the request for one shard of repositories."""
    return BatchRequest(job_time=job_time, shard_num=shard_num, repos=tuple(repos))


def result_exists(request: BatchRequest, bucket_url: str) -> bool:
    """Report whether the result of request is already stored in the bucket."""
    return blob_exists(bucket_url, result_filename(request))


def write_metadata(bucket_url: str, last_shard: int, when: datetime, commit_sha: str) -> None:
    """Write the shard metadata file describing a completed job."""
    metadata = {
        "shardLoc": bucket_url + "/" + blob_filename("", when),
        "numShard": last_shard + 1,
        "commitSha": commit_sha,
    }
    write_blob(bucket_url, shard_metadata_filename(when), json.dumps(metadata, separators=(",", ":")))


def batched(items: Iterable[str], size: int) -> Iterator[list[str]]:
    """Yield lists of up to size consecutive items."""
    if size < 1:
        raise ValueError(f"batch size must be at least 1, got {size}")
    it = iter(items)
    while chunk := list(islice(it, size)):
        yield chunk


class Worker(abc.ABC):
    """Processes shards of repositories."""

    @abc.abstractmethod
    def process(self, request: BatchRequest, bucket_url: str) -> None:
        """Process one shard, writing its result into bucket_url."""

    @abc.abstractmethod
    def post_process(self) -> None:
        """Called after a shard has been processed successfully."""


class WorkLoop:
    """Feeds shards of a local repository list to a worker, recording progress.

    Progress is kept in a state file so that an interrupted run resumes at
    the shard it had reached.
    """

    def __init__(
        self,
        worker: Worker,
        input_lines: Iterable[str],
        state_filename: str,
        bucket_url: str,
        raw_bucket_url: str,
        shard_size: int,
    ) -> None:
        self.worker = worker
        self.input_lines = input_lines
        self.state_filename = state_filename
        self.bucket_url = bucket_url
        self.raw_bucket_url = raw_bucket_url
        self.shard_size = shard_size

    @staticmethod
    def _restore(shards: Iterator[list[str]], current_shard: int) -> None:
        if current_shard <= 0:
            return
        _LOG.info("Restoring previous position at shard %d", current_shard)
        last_finished = current_shard - 1
        shard = 0
        for _ in shards:
            if shard >= last_finished:
                break
            shard += 1
        if shard < last_finished:
            raise ValueError(f"restore state shard mismatch: got = {shard}; want = {last_finished}")

    def _process(self, request: BatchRequest, bucket_url: str) -> None:
        if result_exists(request, bucket_url):
            _LOG.info("Shard %d already exists. Skipping.", request.shard_num)
            return
        self.worker.process(request, bucket_url)

    def _close_input(self) -> None:
        close = getattr(self.input_lines, "close", None)
        if close is not None:
            close()

    def run(self) -> None:
        """Process every shard, then write the shard metadata and clear the state."""
        state = load_state(self.state_filename)
        shards = batched(self.input_lines, self.shard_size)
        try:
            self._restore(shards, state.shard)
            _LOG.info("Starting worker loop")
            for batch in shards:
                request = make_request(batch, state.shard, state.job_time)
                _LOG.info("Received batch for shard %d", state.shard)
                while state.attempt < MAX_ATTEMPTS:
                    # Record the attempt before trying, so a crash still counts.
                    state.attempt += 1
                    state.save()
                    try:
                        self._process(request, self.bucket_url)
                    except Exception:
                        _LOG.exception(
                            "Error processing shard %d (attempt %d)", state.shard, state.attempt
                        )
                        continue
                    self.worker.post_process()
                    break
                state.attempt = 0
                state.shard += 1
        finally:
            self._close_input()

        write_metadata(self.bucket_url, state.shard - 1, state.job_time, MISSING_COMMIT_ID)
        write_metadata(self.raw_bucket_url, state.shard - 1, state.job_time, MISSING_COMMIT_ID)
        state.clear()