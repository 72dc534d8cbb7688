"""Activity tracker: fetch, assemble and persist a user's GitHub activity."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from ghactivity_core.collector import ActivityCollector
from ghactivity_core.errors import AuthenticationError
from ghactivity_core.gh.search import MAX_PAGES
from ghactivity_store.base import BaseStore
from ghactivity_store.models import ISSUES, KINDS, PULL_REQUESTS, REVIEWS, ActivityData, ActivityMetadata

logger = logging.getLogger(__name__)


@dataclass
class ActivitySummary:
    total_pull_requests: int = 0
    open_pull_requests: int = 0
    merged_pull_requests: int = 0
    total_issues: int = 0
    open_issues: int = 0
    closed_issues: int = 0
    total_reviews: int = 0
    approved_reviews: int = 0
    changes_requested_reviews: int = 0


def summarize(data: ActivityData) -> ActivitySummary:
    return ActivitySummary(
        total_pull_requests=len(data.pull_requests),
        open_pull_requests=sum(1 for pr in data.pull_requests if pr.state == "open"),
        merged_pull_requests=sum(1 for pr in data.pull_requests if pr.merged_at),
        total_issues=len(data.issues),
        open_issues=sum(1 for i in data.issues if i.state == "open"),
        closed_issues=sum(1 for i in data.issues if i.state == "closed"),
        total_reviews=len(data.reviews),
        approved_reviews=sum(1 for r in data.reviews if r.state == "APPROVED"),
        changes_requested_reviews=sum(1 for r in data.reviews if r.state == "CHANGES_REQUESTED"),
    )


def _unique_by_id(items: list) -> list:
    """Drop repeated ids, keeping the first copy. Adjacent search windows overlap."""
    seen: set[int] = set()
    unique = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    if len(unique) < len(items):
        logger.debug("Dropped %d duplicate records", len(items) - len(unique))
    return unique


class ActivityTracker:
    """Drives the collector for each record kind and writes the results to a store.

    fetch_all() replaces the stored snapshot; fetch_kind() merges one kind
    into it. Both propagate FetchError / StorageError to the caller.
    """

    def __init__(self, client, store: BaseStore, username: str, *, max_pages: int = MAX_PAGES):
        self._client = client
        self._store = store
        self._username = username
        self._collector = ActivityCollector(client, username, max_pages=max_pages)

    async def check_connection(self) -> bool:
        """Verify the token against the identity endpoint. Never raises."""
        try:
            login = await self._client.get_authenticated_login()
        except Exception as e:
            logger.error("Authentication failed: %s", e)
            return False
        logger.info("Successfully authenticated as: %s", login)
        return True

    async def fetch_all(self) -> ActivityData:
        """Fetch all three kinds concurrently and replace the stored snapshot."""
        logger.info("Starting full activity fetch")

        if not await self.check_connection():
            raise AuthenticationError("Failed to authenticate with GitHub")

        pull_requests, issues, reviews = await asyncio.gather(
            self._collector.collect_pull_requests(),
            self._collector.collect_issues(),
            self._collector.collect_reviews(),
        )
        pull_requests = _unique_by_id(pull_requests)
        issues = _unique_by_id(issues)
        reviews = _unique_by_id(reviews)

        data = ActivityData(
            pull_requests=pull_requests,
            issues=issues,
            reviews=reviews,
            metadata=ActivityMetadata(
                last_updated=datetime.now(timezone.utc).isoformat(),
                username=self._username,
                total_pull_requests=len(pull_requests),
                total_issues=len(issues),
                total_reviews=len(reviews),
            ),
        )

        self._store.save(data)
        logger.info("Successfully saved all activities to storage")
        return data

    async def fetch_kind(self, kind: str) -> None:
        """Fetch one kind and merge it into the stored snapshot."""
        if kind == PULL_REQUESTS:
            items = await self._collector.collect_pull_requests()
        elif kind == ISSUES:
            items = await self._collector.collect_issues()
        elif kind == REVIEWS:
            items = await self._collector.collect_reviews()
        else:
            raise ValueError(f"Unknown record kind: {kind!r}. Choose one of {', '.join(KINDS)}.")

        self._store.append(kind, items)
        logger.info("Saved %d %s", len(items), kind)

    def load(self) -> ActivityData | None:
        return self._store.load()

    def summary(self) -> ActivitySummary | None:
        data = self._store.load()
        if data is None:
            return None
        return summarize(data)
