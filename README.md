# critscore

`critscore` provides the parts of a pipeline that finds open source
repositories, works through them in shards and ranks them by a criticality
score. It uses only the standard library.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

| Module | Purpose |
| --- | --- |
| `critscore.cloudstorage` | Splits a storage URL or local path into a bucket URL and a key. Reads, writes, checks and lists blobs in local-directory (`file://` or plain path) and in-memory (`mem://`) buckets. |
| `critscore.marker` | Writes a marker file that records where results were written. |
| `critscore.repowriter` | Writes repository URLs as plain text or as a scorecard-compatible CSV. |
| `critscore.pq` | A priority queue of CSV rows that pops the highest score first. |
| `critscore.csvscore` | Adds a score column to a CSV of signals and writes the rows from highest to lowest score. |
| `critscore.options` | Parses boolean settings and formats version strings. |
| `critscore.inputiter` | Turns arguments into a stream of repository URLs, read from a file, stdin or the arguments themselves. |
| `critscore.runstate` | Saves progress to a JSON file and loads it back so that an interrupted run can resume. |
| `critscore.localworker` | Splits a list of repositories into shards, hands each shard to a worker and writes shard metadata. |
| `critscore.githubsearch` | Walks a star-sorted repository search past the cap on results per search. |
| `critscore.csvtransfer` | Merges shard CSV files that share a header into one CSV. |

## Examples

### Storage locations

```python
from critscore.cloudstorage import new_writer, parse_bucket_and_prefix, read_blob

bucket, key = parse_bucket_and_prefix("/path/to/file")
# bucket == "file:///path/to/?metadata=skip", key == "file"

with new_writer("mem://bucket/path/to/blob") as writer:
    writer.write("hello")
assert read_blob("mem://bucket", "path/to/blob") == b"hello"
```

`new_writer` buffers what is written and stores the blob when the writer is
closed; if the `with` block raises, nothing is stored. A URL with a host but
no scheme, such as `//example.com/x`, an unparseable URL, or a scheme other
than `file` or `mem` raises `CloudStorageError`. `write_blob`, `read_blob`,
`blob_exists` and `list_keys` work on a bucket URL and a key. `mem://` buckets
live only in the current process.

### Marker files

```python
from critscore.marker import MarkerType, write_marker

write_marker(MarkerType.parse("dir"), "marker.txt", "gs://bucket/path/to/file.txt")
```

`marker.txt` then holds `path/to`. With `full` the output location is written
as given; with `file` only the path part of a bucket URL is written. An unknown
name raises `UnknownMarkerTypeError`.

### Writing repository lists

```python
import sys

from critscore.repowriter import WriterType

writer = WriterType.parse("scorecard").new(sys.stdout)
writer.write("https://github.com/example/example")
```

This prints a `repo,metadata` header and then one row per repository with
empty metadata. `WriterType.parse("text")` gives one URL per line instead. An
unknown name raises `UnknownWriterTypeError`.

### Ranking rows by score

```python
from critscore.pq import PriorityQueue

queue = PriorityQueue()
queue.push_row(["a"], 0.2)
queue.push_row(["b"], 0.9)
assert queue.pop_row() == ["b"]
```

Rows with equal scores come back in the order they were pushed.

`critscore.csvscore.score_csv(in_stream, out_stream, score, column)` does the
same for a whole CSV stream. `score` is a callable that takes a record (a dict
from column name to value) and returns a number. The output has the input
header plus `column`, each row gains the score formatted to five decimal
places, and rows are written highest score first. It returns the number of
rows written. If the header already holds `column`, it raises
`DuplicateColumnError`.

### Boolean settings and versions

```python
from critscore.options import format_version, parse_bool

parse_bool("enabled", False)  # True
parse_bool("", True)          # True: the empty string gives the default
format_version("1.2.0", "2024-01-01", "abc123")  # "v1.2.0 (2024-01-01 - abc123)"
```

Any unrecognised boolean string raises `ValueError`. A version of `dev`
formats as `dev build`.

### Input of repositories

```python
from critscore.inputiter import new_input

with new_input(["urls.txt"]) as repos:
    for url in repos:
        print(url)
```

A single argument is read as a file, or stdin for `-`. If no such file exists
and the argument parses as a URL, it is taken to be a repository itself. Two
or more arguments are all taken to be repositories.

### Working through shards

```python
from critscore.localworker import WorkLoop, Worker


class PrintWorker(Worker):
    def process(self, request, bucket_url):
        print(request.shard_num, request.repos)

    def post_process(self):
        pass


loop = WorkLoop(PrintWorker(), ["r1", "r2", "r3"], "state.json",
                "file:///tmp/data", "file:///tmp/rawdata", shard_size=2)
loop.run()
```

Each shard is attempted up to seven times. Progress is kept in the state file
(see `critscore.runstate`), so a run that was stopped resumes at the shard it
had reached. A shard whose result (`shard-NNNNNNN` in the job's directory) is
already in the bucket is skipped. At the end a `.shard_metadata` file is
written to both buckets and the state file is removed.

### Enumerating by stars

```python
from critscore.githubsearch import Searcher

searcher = Searcher(fetch_page)
for url in searcher.repos_by_stars("is:public", min_stars=10, overlap=5):
    print(url)
```

`fetch_page(query, per_page, cursor)` must return a `SearchPage` of
`RepoResult`s. Each URL is yielded once. When the star range can no longer be
narrowed, `UnableToListAllResultsError` is raised.

### Merging shard CSVs

`critscore.csvtransfer.merge_shard_csvs(shards)` takes `(key, content)` pairs,
skips keys whose file name does not start with `shard-`, and returns the merged
CSV text with the header written once, together with the number of records. A
shard whose header differs from the first one raises `HeaderMismatchError`.

## What the package does not do

- It installs no commands; everything is used as a library.
- It has no GitHub client. `Searcher` calls whatever `fetch_page` it is given.
- It has no scoring algorithm or scoring configuration. `score_csv` takes the
  scoring function as an argument.
- It does not collect signals about repositories. A `Worker` subclass must
  supply the processing of each shard.
- Storage covers local directories and in-process memory only; other schemes
  such as `gs://` or `s3://` are rejected.