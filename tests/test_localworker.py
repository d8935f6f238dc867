import json
from datetime import datetime, timezone

import pytest

from critscore.cloudstorage import list_keys, read_blob, write_blob
from critscore.localworker import (
    HEAD_SHA,
    MAX_ATTEMPTS,
    MISSING_COMMIT_ID,
    BatchRequest,
    Worker,
    WorkLoop,
    batched,
    blob_filename,
    make_request,
    result_exists,
    result_filename,
    shard_metadata_filename,
    write_metadata,
)
from critscore.runstate import RunState

JOB_TIME = datetime(2023, 12, 25, 12, 34, 56, 0, tzinfo=timezone.utc)
METADATA_KEY = "2023.12.25/123456/.shard_metadata"


class RecordingWorker(Worker):
    def __init__(self):
        self.last_request = None
        self.repo_count = 0
        self.batch_count = 0
        self.post_count = 0

    def process(self, request, bucket_url):
        self.batch_count += 1
        self.repo_count += len(request.repos)
        self.last_request = request

    def post_process(self):
        self.post_count += 1


class FailingWorker(Worker):
    def __init__(self):
        self.calls = 0
        self.post_count = 0

    def process(self, request, bucket_url):
        self.calls += 1
        raise RuntimeError("boom")

    def post_process(self):
        self.post_count += 1


def _bucket_url(path):
    posix = path.as_posix()
    prefix = "" if posix.startswith("/") else "/"
    return "file://" + prefix + posix


def make_loop(tmp_path, start_shard, worker):
    (tmp_path / "data").mkdir()
    (tmp_path / "rawdata").mkdir()
    loop = WorkLoop(
        worker,
        ["1", "2", "3", "4", "5"],
        str(tmp_path / "statefile"),
        _bucket_url(tmp_path / "data"),
        _bucket_url(tmp_path / "rawdata"),
        2,
    )
    RunState(job_time=JOB_TIME, filename=loop.state_filename, shard=start_shard).save()
    return loop


def test_happy_path(tmp_path):
    worker = RecordingWorker()
    loop = make_loop(tmp_path, 0, worker)
    loop.run()
    assert worker.batch_count == 3
    assert worker.repo_count == 5
    assert worker.post_count == 3
    assert list_keys(loop.bucket_url) == [METADATA_KEY]
    assert list_keys(loop.raw_bucket_url) == [METADATA_KEY]
    assert not (tmp_path / "statefile").exists()


def test_metadata_contents(tmp_path):
    loop = make_loop(tmp_path, 0, RecordingWorker())
    loop.run()
    for url in (loop.bucket_url, loop.raw_bucket_url):
        metadata = json.loads(read_blob(url, METADATA_KEY))
        assert metadata == {
            "shardLoc": url + "/2023.12.25/123456/",
            "numShard": 3,
            "commitSha": MISSING_COMMIT_ID,
        }


def test_recovery(tmp_path):
    worker = RecordingWorker()
    loop = make_loop(tmp_path, 1, worker)
    loop.run()
    assert worker.batch_count == 2
    assert worker.repo_count == 3
    assert worker.last_request.repos == ("5",)
    assert worker.last_request.shard_num == 2


def test_restore_past_end_raises(tmp_path):
    loop = make_loop(tmp_path, 5, RecordingWorker())
    with pytest.raises(ValueError, match="shard mismatch"):
        loop.run()


def test_failing_worker_gives_up_after_max_attempts(tmp_path):
    worker = FailingWorker()
    loop = make_loop(tmp_path, 0, worker)
    loop.run()
    assert worker.calls == 3 * MAX_ATTEMPTS
    assert worker.post_count == 0
    assert list_keys(loop.bucket_url) == [METADATA_KEY]


def test_existing_result_is_skipped(tmp_path):
    worker = RecordingWorker()
    loop = make_loop(tmp_path, 0, worker)
    done = make_request(["1", "2"], 0, JOB_TIME)
    write_blob(loop.bucket_url, result_filename(done), "done")
    loop.run()
    assert worker.batch_count == 2
    assert worker.repo_count == 3


def test_input_closed_after_run(tmp_path):
    class Lines:
        closed = False

        def __iter__(self):
            return iter(["a", "b", "c"])

        def close(self):
            self.closed = True

    (tmp_path / "data").mkdir()
    (tmp_path / "rawdata").mkdir()
    lines = Lines()
    worker = RecordingWorker()
    loop = WorkLoop(
        worker,
        lines,
        str(tmp_path / "state"),
        _bucket_url(tmp_path / "data"),
        _bucket_url(tmp_path / "rawdata"),
        2,
    )
    loop.run()
    assert lines.closed is True
    assert worker.repo_count == 3


def test_blob_filename():
    assert blob_filename(".shard_metadata", JOB_TIME) == METADATA_KEY
    assert shard_metadata_filename(JOB_TIME) == METADATA_KEY


def test_blob_filename_naive_is_utc():
    naive = JOB_TIME.replace(tzinfo=None)
    assert blob_filename("x", naive) == blob_filename("x", JOB_TIME)


def test_result_filename():
    request = make_request(["a"], 3, JOB_TIME)
    assert result_filename(request) == "2023.12.25/123456/shard-0000003"


def test_make_request():
    request = make_request(["a", "b"], 4, JOB_TIME)
    assert request == BatchRequest(job_time=JOB_TIME, shard_num=4, repos=("a", "b"))
    assert request.commit == HEAD_SHA


def test_result_exists(tmp_path):
    url = _bucket_url(tmp_path)
    request = make_request(["a"], 0, JOB_TIME)
    assert result_exists(request, url) is False
    write_blob(url, result_filename(request), "x")
    assert result_exists(request, url) is True


def test_write_metadata(tmp_path):
    url = _bucket_url(tmp_path)
    write_metadata(url, 0, JOB_TIME, "abc")
    metadata = json.loads(read_blob(url, METADATA_KEY))
    assert metadata["numShard"] == 1
    assert metadata["commitSha"] == "abc"


def test_batched():
    assert list(batched(["1", "2", "3", "4", "5"], 2)) == [["1", "2"], ["3", "4"], ["5"]]
    assert list(batched([], 3)) == []


def test_batched_invalid_size():
    with pytest.raises(ValueError):
        list(batched(["a"], 0))