"""Async facade over PyGithub for the calls the activity collector needs.

PyGithub is blocking. Each call runs in a worker thread via asyncio.to_thread
so the three record kinds can be fetched as concurrent coroutines, while an
asyncio.Lock keeps only one request in flight on the shared PyGithub
requester at a time.

Errors are left as github.GithubException; ``.status`` carries the HTTP
status code and 422 means the search window was rejected.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from github import Github
from github.PaginatedList import PaginatedList
from github.PullRequestReview import PullRequestReview

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"


@dataclass
class SearchPage:
    """One page of /search/issues results."""

    items: list[dict] = field(default_factory=list)
    incomplete: bool = False


class GitHubClient:
    def __init__(self, token: str, *, base_url: str | None = None, per_page: int = 100):
        self._gh = Github(token, base_url=base_url or DEFAULT_BASE_URL, per_page=per_page)
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _call(self, fn, *args):
        async with self._lock:
            return await asyncio.to_thread(fn, *args)

    async def search_issues(self, query: str, sort: str, order: str, page: int, per_page: int) -> SearchPage:
        """Run one page of an issue/PR search."""

        def _search() -> SearchPage:
            _, data = self._gh.requester.requestJsonAndCheck(
                "GET",
                "/search/issues",
                parameters={"q": query, "sort": sort, "order": order, "page": page, "per_page": per_page},
            )
            data = data or {}
            return SearchPage(items=data.get("items") or [], incomplete=bool(data.get("incomplete_results")))

        logger.debug("search page=%d q=%r", page, query)
        return await self._call(_search)

    async def get_pull_request(self, owner: str, repo: str, number: int) -> dict:
        """Return the full pull request JSON, including diff stats and reviewers."""

        def _get() -> dict:
            return self._gh.get_repo(f"{owner}/{repo}", lazy=True).get_pull(number).raw_data

        return await self._call(_get)

    async def list_reviews(self, owner: str, repo: str, number: int) -> list[dict]:
        """Return every review on a pull request, across all pages."""

        def _list() -> list[dict]:
            reviews = PaginatedList(
                PullRequestReview,
                self._gh.requester,
                f"/repos/{owner}/{repo}/pulls/{number}/reviews",
                None,
            )
            return [review.raw_data for review in reviews]

        return await self._call(_list)

    async def get_authenticated_login(self) -> str:
        """Return the login the token belongs to. Raises GithubException on a bad token."""
        return await self._call(lambda: self._gh.get_user().login)

    async def close(self) -> None:
        await asyncio.to_thread(self._gh.close)
