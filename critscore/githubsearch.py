"""Enumeration of GitHub repositories by star count past the search result limit."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

DEFAULT_PER_PAGE = 100

_LOG = logging.getLogger(__name__)


class UnableToListAllResultsError(Exception):
    """Raised when too many repositories share a star range to list them all."""

    def __init__(self, message: str = "unable to list all results") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class RepoResult:
    """A repository returned by a search."""

    url: str
    stargazer_count: int


@dataclass(frozen=True)
class SearchPage:
    """One page of search results."""

    repos: list[RepoResult] = field(default_factory=list)
    total: int = 0
    end_cursor: str = ""
    has_next_page: bool = False


FetchPage = Callable[[str, int, "str | None"], SearchPage]


def build_query(query: str, min_stars: int, max_stars: int) -> str:
    """Return query sorted by stars and limited to the given star range.

    A max_stars of zero or less leaves the range open above.
    """
    query = query + " sort:stars "
    if max_stars > 0:
        return query + f"stars:{min_stars}..{max_stars}"
    return query + f"stars:>={min_stars}"


class Searcher:
    """Runs repository searches through fetch_page.

    fetch_page(query, per_page, cursor) returns one SearchPage; cursor is None
    for the first page and the previous page's end cursor after that.
    """

    def __init__(self, fetch_page: FetchPage, per_page: int = DEFAULT_PER_PAGE) -> None:
        self._fetch_page = fetch_page
        self.per_page = per_page

    def _pages(self, query: str) -> Iterator[SearchPage]:
        _LOG.debug("Searching GitHub: %s", query)
        page = self._fetch_page(query, self.per_page, None)
        yield page
        while page.has_next_page:
            page = self._fetch_page(query, self.per_page, page.end_cursor or None)
            yield page

    def repos_by_stars(self, base_query: str, min_stars: int, overlap: int) -> Iterator[str]:
        """Yield the URL of every repository matching base_query with at least min_stars.

        Repositories come from the most stars to the least, each only once.
        Each query is limited by the star count of the last repository the
        previous query returned, plus overlap, to step past the cap on results
        returned by a single search. Raises UnableToListAllResultsError when
        that limit can no longer be lowered.
        """
        emitted: set[str] = set()
        max_stars = -1
        while True:
            query = build_query(base_query, min_stars, max_stars)
            pages = self._pages(query)
            first = next(pages)
            total = first.total
            seen = 0
            stars = 0
            for page in itertools.chain([first], pages):
                for repo in page.repos:
                    seen += 1
                    stars = repo.stargazer_count
                    if repo.url not in emitted:
                        emitted.add(repo.url)
                        yield repo.url
            remaining = total - seen
            _LOG.debug(
                "Finished query %r: total=%d returned=%d remaining=%d unique=%d last_stars=%d",
                query, total, seen, remaining, len(emitted), stars,
            )
            new_max_stars = stars + overlap
            if remaining <= 0:
                return
            if max_stars == -1 or new_max_stars < max_stars:
                max_stars = new_max_stars
                continue
            _LOG.error(
                "Too many repositories for current range: min_stars=%d stars=%d max_stars=%d overlap=%d",
                min_stars, stars, max_stars, overlap,
            )
            raise UnableToListAllResultsError()