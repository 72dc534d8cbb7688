"""Date-bucketed pagination over the GitHub search API.

GitHub never returns more than 1000 results for one search query (10 pages of
100). To enumerate a longer history the search is split into windows: each
window adds ``<sort_field>:<YYYY-MM-DD`` to the query, pages through it
newest-first, and the oldest timestamp it saw becomes the upper bound of the
next window.

Adjacent windows can return the same item. Deduplication is left to the
store.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone

from github import GithubException

logger = logging.getLogger(__name__)

# GitHub was founded in 2008; nothing older can match.
EPOCH_FLOOR = datetime(2008, 1, 1, tzinfo=timezone.utc)

PER_PAGE = 100
MAX_PAGES = 10  # 10 x 100 = the search API's 1000-result cap

_WINDOW_REJECTED = 422


def parse_timestamp(value: str) -> datetime:
    """Parse a GitHub ISO-8601 timestamp ("2024-01-05T10:00:00Z") as an aware datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def paginate_search(
    client,
    base_query: str,
    sort_field: str = "created",
    *,
    per_page: int = PER_PAGE,
    max_pages: int = MAX_PAGES,
    until: datetime | None = None,
) -> AsyncIterator[list[dict]]:
    """Yield batches of raw search items matching ``base_query``, newest window first.

    ``sort_field`` is ``created`` or ``updated``; the matching ``*_at`` field
    of each item drives the window cursor. ``until`` is the exclusive upper
    bound of the first window (defaults to now; the bound is date-only, so
    the first window covers everything before today).

    Stops when a window returns nothing or the cursor passes EPOCH_FLOOR. A
    422 narrows the window by one day and retries; any other API error
    propagates.
    """
    if sort_field not in ("created", "updated"):
        raise ValueError(f"sort_field must be 'created' or 'updated', got {sort_field!r}")

    timestamp_key = f"{sort_field}_at"
    current_date = until or datetime.now(timezone.utc)
    if current_date.tzinfo is None:
        current_date = current_date.replace(tzinfo=timezone.utc)
    has_more = True

    while has_more:
        query = f"{base_query} {sort_field}:<{current_date.date().isoformat()}"
        batch: list[dict] = []
        rejected = False

        logger.debug("Searching with query: %s", query)

        for page in range(1, max_pages + 1):
            try:
                result = await client.search_issues(query, sort_field, "desc", page, per_page)
            except GithubException as e:
                if e.status != _WINDOW_REJECTED:
                    raise
                logger.warning("Search window rejected (HTTP 422) for %r; narrowing by one day", query)
                current_date -= timedelta(days=1)
                rejected = True
                break

            if not result.items:
                has_more = False
                break

            if result.incomplete:
                logger.warning("Search results are incomplete (hit API limit) for %r", query)
                break

            batch.extend(result.items)

            for item in result.items:
                raw = item.get(timestamp_key)
                if not raw:
                    continue
                item_date = parse_timestamp(raw)
                if item_date < current_date:
                    current_date = item_date

            if len(result.items) < per_page:
                break

        if batch:
            logger.debug("Window %r produced %d items", query, len(batch))
            yield batch

        if current_date <= EPOCH_FLOOR or (not batch and not rejected):
            has_more = False

        # A rejected window already moved the cursor back a day.
        if has_more and not rejected:
            current_date -= timedelta(seconds=1)
