"""Tests for ActivityTracker."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from github import GithubException

from ghactivity_core.errors import AuthenticationError, FetchError
from ghactivity_core.gh.client import GitHubClient
from ghactivity_core.tracker import ActivityTracker, summarize
from ghactivity_store.base import BaseStore
from ghactivity_store.jsonfile import JSONStore
from ghactivity_store.models import ActivityData, ActivityMetadata, Issue, PullRequest, Repository, Review

_REPO = Repository(name="widgets", full_name="octo/widgets", owner="octo", url="https://github.com/octo/widgets")


def _make_pr(id, state="open", merged_at=None):
    return PullRequest(
        id=id,
        number=id,
        title=f"PR {id}",
        url="",
        html_url=f"https://github.com/octo/widgets/pull/{id}",
        state=state,
        created_at="2024-01-01T00:00:00Z",
        updated_at="2024-01-01T00:00:00Z",
        merged_at=merged_at,
        repository=_REPO,
        author="alice",
    )


def _make_issue(id, state="open"):
    return Issue(
        id=id,
        number=id,
        title=f"Issue {id}",
        url="",
        html_url=f"https://github.com/octo/widgets/issues/{id}",
        state=state,
        created_at="2024-01-01T00:00:00Z",
        updated_at="2024-01-01T00:00:00Z",
        repository=_REPO,
        author="alice",
    )


def _make_review(id, state="APPROVED"):
    return Review(
        id=id,
        pull_request_number=1,
        pull_request_title="PR 1",
        pull_request_url="https://github.com/octo/widgets/pull/1",
        state=state,
        submitted_at="2024-01-02T00:00:00Z",
        repository=_REPO,
        author="alice",
        html_url="",
    )


@pytest.fixture
def client():
    client = AsyncMock(spec=GitHubClient)
    client.get_authenticated_login.return_value = "alice"
    return client


@pytest.fixture
def store():
    return MagicMock(spec=BaseStore)


def _stub_collector(mocker, tracker, prs=(), issues=(), reviews=()):
    collector = tracker._collector
    mocker.patch.object(collector, "collect_pull_requests", AsyncMock(return_value=list(prs)))
    mocker.patch.object(collector, "collect_issues", AsyncMock(return_value=list(issues)))
    mocker.patch.object(collector, "collect_reviews", AsyncMock(return_value=list(reviews)))
    return collector


# ---------------------------------------------------------------------------
# fetch_all
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fetch_all_saves_snapshot(client, store, mocker):
    tracker = ActivityTracker(client, store, "alice")
    _stub_collector(mocker, tracker, prs=[_make_pr(1), _make_pr(2)], issues=[_make_issue(3)], reviews=[])

    data = await tracker.fetch_all()

    store.save.assert_called_once_with(data)
    assert data.metadata.username == "alice"
    assert data.metadata.total_pull_requests == 2
    assert data.metadata.total_issues == 1
    assert data.metadata.total_reviews == 0
    assert data.metadata.last_updated


@pytest.mark.asyncio
async def test_fetch_all_auth_failure_makes_no_search(client, store, mocker):
    client.get_authenticated_login.side_effect = GithubException(401, {"message": "Bad credentials"}, None)
    tracker = ActivityTracker(client, store, "alice")
    collector = _stub_collector(mocker, tracker)

    with pytest.raises(AuthenticationError):
        await tracker.fetch_all()

    collector.collect_pull_requests.assert_not_awaited()
    client.search_issues.assert_not_awaited()
    store.save.assert_not_called()


@pytest.mark.asyncio
async def test_fetch_all_runs_kinds_concurrently(client, store, mocker):
    tracker = ActivityTracker(client, store, "alice")
    issues_started = asyncio.Event()

    async def collect_pull_requests():
        # Only completes if collect_issues gets to run while this one waits.
        await asyncio.wait_for(issues_started.wait(), timeout=1)
        return [_make_pr(1)]

    async def collect_issues():
        issues_started.set()
        return [_make_issue(2)]

    mocker.patch.object(tracker._collector, "collect_pull_requests", collect_pull_requests)
    mocker.patch.object(tracker._collector, "collect_issues", collect_issues)
    mocker.patch.object(tracker._collector, "collect_reviews", AsyncMock(return_value=[]))

    data = await tracker.fetch_all()

    assert data.metadata.total_pull_requests == 1
    assert data.metadata.total_issues == 1


@pytest.mark.asyncio
async def test_fetch_all_propagates_fetch_error_without_saving(client, store, mocker):
    tracker = ActivityTracker(client, store, "alice")
    collector = _stub_collector(mocker, tracker)
    collector.collect_reviews.side_effect = FetchError("Failed to fetch reviews: boom")

    with pytest.raises(FetchError):
        await tracker.fetch_all()

    store.save.assert_not_called()


@pytest.mark.asyncio
async def test_check_connection_never_raises(client, store):
    client.get_authenticated_login.side_effect = RuntimeError("network down")
    tracker = ActivityTracker(client, store, "alice")

    assert await tracker.check_connection() is False


# ---------------------------------------------------------------------------
# fetch_kind
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fetch_kind_appends_to_store(client, store, mocker):
    tracker = ActivityTracker(client, store, "alice")
    collector = _stub_collector(mocker, tracker, issues=[_make_issue(1)])

    await tracker.fetch_kind("issues")

    store.append.assert_called_once_with("issues", [_make_issue(1)])
    collector.collect_pull_requests.assert_not_awaited()
    store.save.assert_not_called()


@pytest.mark.asyncio
async def test_fetch_kind_twice_stores_each_id_once(client, tmp_path, mocker):
    store = JSONStore(str(tmp_path / "activities.json"))
    tracker = ActivityTracker(client, store, "alice")
    collector = _stub_collector(mocker, tracker)

    collector.collect_pull_requests.return_value = [_make_pr(1), _make_pr(2)]
    await tracker.fetch_kind("pullRequests")
    collector.collect_pull_requests.return_value = [_make_pr(2), _make_pr(3)]
    await tracker.fetch_kind("pullRequests")

    data = tracker.load()
    assert [pr.id for pr in data.pull_requests] == [1, 2, 3]
    assert data.metadata.total_pull_requests == 3


@pytest.mark.asyncio
async def test_fetch_kind_unknown_kind_raises(client, store):
    tracker = ActivityTracker(client, store, "alice")
    with pytest.raises(ValueError):
        await tracker.fetch_kind("commits")


# ---------------------------------------------------------------------------
# summary
# ---------------------------------------------------------------------------


def test_summarize_counts_states():
    data = ActivityData(
        pull_requests=[_make_pr(1), _make_pr(2, state="closed", merged_at="2024-01-02T00:00:00Z")],
        issues=[_make_issue(3), _make_issue(4, state="closed"), _make_issue(5, state="closed")],
        reviews=[_make_review(6), _make_review(7, state="CHANGES_REQUESTED"), _make_review(8, state="COMMENTED")],
        metadata=ActivityMetadata(last_updated="2024-01-03T00:00:00Z", username="alice"),
    )

    summary = summarize(data)

    assert summary.total_pull_requests == 2
    assert summary.open_pull_requests == 1
    assert summary.merged_pull_requests == 1
    assert summary.total_issues == 3
    assert summary.open_issues == 1
    assert summary.closed_issues == 2
    assert summary.total_reviews == 3
    assert summary.approved_reviews == 1
    assert summary.changes_requested_reviews == 1


def test_summary_none_when_store_empty(client, store):
    store.load.return_value = None
    assert ActivityTracker(client, store, "alice").summary() is None


# ---------------------------------------------------------------------------
# overlapping search pages
# ---------------------------------------------------------------------------


def _issue_item(id):
    return {
        "id": id,
        "number": id,
        "title": f"Issue {id}",
        "state": "open",
        "created_at": "2023-05-01T10:00:00Z",
        "updated_at": "2023-05-01T10:00:00Z",
        "repository_url": "https://api.github.com/repos/octo/widgets",
        "user": {"login": "alice"},
    }


@pytest.mark.asyncio
async def test_fetch_all_stores_each_id_once_when_pages_overlap(client, tmp_path):
    from ghactivity_core.gh.client import SearchPage

    # Results shift between requests, so page 2 repeats the last item of page 1.
    pages = {1: [_issue_item(i) for i in range(1, 101)], 2: [_issue_item(i) for i in range(100, 150)]}

    async def search_issues(query, sort, order, page, per_page):
        if "type:issue" not in query or "created:<2023-05-01" in query:
            return SearchPage(items=[])
        return SearchPage(items=pages[page])

    client.search_issues.side_effect = search_issues
    store = JSONStore(str(tmp_path / "activities.json"))
    tracker = ActivityTracker(client, store, "alice")

    data = await tracker.fetch_all()

    assert len(data.issues) == 149
    assert data.metadata.total_issues == 149
    loaded = store.load()
    ids = [i.id for i in loaded.issues]
    assert len(ids) == len(set(ids)) == 149
    assert loaded.metadata.total_issues == 149
