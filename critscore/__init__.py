"""Building blocks for enumerating repositories, working through them in shards and ranking them by score."""

__version__ = "0.1.0"

__all__ = [
    "cloudstorage",
    "csvscore",
    "csvtransfer",
    "githubsearch",
    "inputiter",
    "localworker",
    "marker",
    "options",
    "pq",
    "repowriter",
    "runstate",
]