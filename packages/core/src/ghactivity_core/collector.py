"""Turn raw search batches into PullRequest / Issue / Review records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from ghactivity_core.errors import FetchError
from ghactivity_core.gh.search import MAX_PAGES, paginate_search
from ghactivity_store.models import REVIEW_STATES, Issue, PullRequest, Repository, Review

logger = logging.getLogger(__name__)


def parse_repository(item: dict) -> Repository:
    """Build the embedded repository descriptor for a search item.

    Owner and name are the last two path segments of ``repository_url``
    (``https://api.github.com/repos/{owner}/{repo}``). Visibility comes from
    an embedded ``repository.private`` field when the payload has one;
    otherwise it falls back to looking for "private" in the URL, which
    misclassifies public repositories with "private" in their name.
    """
    repository_url = item.get("repository_url") or ""
    parts = [p for p in repository_url.rstrip("/").split("/") if p]
    owner, name = (parts[-2], parts[-1]) if len(parts) >= 2 else ("", "")

    embedded = item.get("repository")
    if isinstance(embedded, dict) and "private" in embedded:
        private = bool(embedded["private"])
    else:
        private = "private" in repository_url

    return Repository(
        name=name,
        full_name=f"{owner}/{name}",
        owner=owner,
        url=f"https://github.com/{owner}/{name}",
        private=private,
    )


def _logins(users) -> list[str]:
    return [u.get("login") for u in users or [] if isinstance(u, dict) and u.get("login")]


def _labels(labels) -> list[str]:
    return [label if isinstance(label, str) else label.get("name") or "" for label in labels or []]


def _login(user, default: str) -> str:
    if isinstance(user, dict) and user.get("login"):
        return user["login"]
    return default


def to_pull_request(item: dict, detail: dict, username: str) -> PullRequest:
    repository = parse_repository(item)
    if isinstance(detail.get("base"), dict) and isinstance(detail["base"].get("repo"), dict):
        base_repo = detail["base"]["repo"]
        if "private" in base_repo:
            repository.private = bool(base_repo["private"])
    return PullRequest(
        id=detail["id"],
        number=detail["number"],
        title=detail.get("title") or "",
        url=detail.get("url") or "",
        html_url=detail.get("html_url") or "",
        state=detail.get("state") or "open",
        created_at=detail.get("created_at") or "",
        updated_at=detail.get("updated_at") or "",
        closed_at=detail.get("closed_at"),
        merged_at=detail.get("merged_at"),
        repository=repository,
        author=_login(detail.get("user"), username),
        draft=bool(detail.get("draft")),
        labels=_labels(detail.get("labels")),
        assignees=_logins(detail.get("assignees")),
        reviewers=_logins(detail.get("requested_reviewers")),
        commits=detail.get("commits") or 0,
        additions=detail.get("additions") or 0,
        deletions=detail.get("deletions") or 0,
        changed_files=detail.get("changed_files") or 0,
    )


def to_issue(item: dict, username: str) -> Issue:
    return Issue(
        id=item["id"],
        number=item["number"],
        title=item.get("title") or "",
        url=item.get("url") or "",
        html_url=item.get("html_url") or "",
        state=item.get("state") or "open",
        created_at=item.get("created_at") or "",
        updated_at=item.get("updated_at") or "",
        closed_at=item.get("closed_at"),
        repository=parse_repository(item),
        author=_login(item.get("user"), username),
        labels=_labels(item.get("labels")),
        assignees=_logins(item.get("assignees")),
        comments=item.get("comments") or 0,
        body=item.get("body") or None,
    )


def to_review(item: dict, review: dict, username: str, fetched_at: str) -> Review:
    state = (review.get("state") or "COMMENTED").upper()
    if state not in REVIEW_STATES:
        logger.warning("Unknown review state %r on review %s; recording it as COMMENTED", state, review.get("id"))
        state = "COMMENTED"
    return Review(
        id=review["id"],
        pull_request_number=item["number"],
        pull_request_title=item.get("title") or "",
        pull_request_url=item.get("html_url") or "",
        state=state,
        submitted_at=review.get("submitted_at") or fetched_at,
        repository=parse_repository(item),
        author=username,
        html_url=review.get("html_url") or "",
        body=review.get("body") or None,
    )


class ActivityCollector:
    """Fetches one user's pull requests, issues and reviews as domain records.

    Each collect_* method walks its search query window by window. Per-item
    lookups (PR details, review lists) run one after another to stay clear of
    GitHub's secondary rate limit; a failed lookup skips that item only.
    """

    def __init__(self, client, username: str, *, max_pages: int = MAX_PAGES):
        self._client = client
        self._username = username
        self._max_pages = max_pages

    def _batches(self, base_query: str, sort_field: str):
        return paginate_search(self._client, base_query, sort_field, max_pages=self._max_pages)

    async def collect_pull_requests(self) -> list[PullRequest]:
        logger.info("Fetching pull requests for user: %s", self._username)
        pull_requests: list[PullRequest] = []
        try:
            async for batch in self._batches(f"author:{self._username} type:pr", "created"):
                logger.info("Processing batch of %d PRs", len(batch))
                for item in batch:
                    repository = parse_repository(item)
                    try:
                        detail = await self._client.get_pull_request(
                            repository.owner, repository.name, item["number"]
                        )
                        pull_requests.append(to_pull_request(item, detail, self._username))
                    except Exception as e:
                        logger.warning(
                            "Failed to fetch PR details for %s#%s: %s", repository.full_name, item.get("number"), e
                        )
        except Exception as e:
            logger.error("Failed to fetch pull requests: %s", e)
            raise FetchError(f"Failed to fetch pull requests: {e}") from e

        logger.info("Fetched %d pull requests", len(pull_requests))
        return pull_requests

    async def collect_issues(self) -> list[Issue]:
        logger.info("Fetching issues for user: %s", self._username)
        issues: list[Issue] = []
        try:
            async for batch in self._batches(f"author:{self._username} type:issue", "created"):
                logger.info("Processing batch of %d issues", len(batch))
                issues.extend(to_issue(item, self._username) for item in batch)
        except Exception as e:
            logger.error("Failed to fetch issues: %s", e)
            raise FetchError(f"Failed to fetch issues: {e}") from e

        logger.info("Fetched %d issues", len(issues))
        return issues

    async def collect_reviews(self) -> list[Review]:
        """Collect the user's own reviews on every PR the search says they reviewed.

        The search only proves the user reviewed a PR; the review list for that
        PR is filtered client-side to the user's entries.
        """
        logger.info("Fetching reviews for user: %s", self._username)
        reviews: list[Review] = []
        try:
            async for batch in self._batches(f"reviewed-by:{self._username} type:pr", "updated"):
                logger.info("Processing batch of %d PRs with reviews", len(batch))
                for item in batch:
                    repository = parse_repository(item)
                    try:
                        pr_reviews = await self._client.list_reviews(
                            repository.owner, repository.name, item["number"]
                        )
                    except Exception as e:
                        logger.warning(
                            "Failed to fetch reviews for %s#%s: %s", repository.full_name, item.get("number"), e
                        )
                        continue
                    fetched_at = datetime.now(timezone.utc).isoformat()
                    for review in pr_reviews:
                        if _login(review.get("user"), "").lower() != self._username.lower():
                            continue
                        reviews.append(to_review(item, review, self._username, fetched_at))
        except Exception as e:
            logger.error("Failed to fetch reviews: %s", e)
            raise FetchError(f"Failed to fetch reviews: {e}") from e

        logger.info("Fetched %d reviews", len(reviews))
        return reviews
