"""Tests for ActivityCollector and the search-item mappers."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock

import pytest
from github import GithubException

from ghactivity_core.collector import ActivityCollector, parse_repository, to_issue, to_pull_request, to_review
from ghactivity_core.errors import FetchError
from ghactivity_core.gh.client import GitHubClient, SearchPage


def _item(number, created_at="2023-05-01T10:00:00Z", repo="octo/widgets", **kwargs):
    item = {
        "id": 1000 + number,
        "number": number,
        "title": f"Item {number}",
        "url": f"https://api.github.com/repos/{repo}/issues/{number}",
        "html_url": f"https://github.com/{repo}/issues/{number}",
        "state": "open",
        "created_at": created_at,
        "updated_at": created_at,
        "repository_url": f"https://api.github.com/repos/{repo}",
        "user": {"login": "alice"},
        "labels": [{"name": "bug"}],
        "assignees": [],
        "comments": 1,
    }
    item.update(kwargs)
    return item


def _detail(number, **kwargs):
    detail = {
        "id": 5000 + number,
        "number": number,
        "title": f"PR {number}",
        "url": f"https://api.github.com/repos/octo/widgets/pulls/{number}",
        "html_url": f"https://github.com/octo/widgets/pull/{number}",
        "state": "closed",
        "created_at": "2023-05-01T10:00:00Z",
        "updated_at": "2023-05-02T10:00:00Z",
        "closed_at": "2023-05-02T10:00:00Z",
        "merged_at": "2023-05-02T10:00:00Z",
        "user": {"login": "alice"},
        "draft": False,
        "labels": [{"name": "enhancement"}],
        "assignees": [{"login": "alice"}],
        "requested_reviewers": [{"login": "bob"}],
        "commits": 2,
        "additions": 10,
        "deletions": 3,
        "changed_files": 1,
    }
    detail.update(kwargs)
    return detail


@pytest.fixture
def client():
    client = AsyncMock(spec=GitHubClient)
    return client


def _one_window(client, items):
    """First window returns ``items``; the next one is empty."""
    client.search_issues.side_effect = [SearchPage(items=items), SearchPage(items=[])]


# ---------------------------------------------------------------------------
# parse_repository
# ---------------------------------------------------------------------------


def test_parse_repository_from_repository_url():
    repo = parse_repository({"repository_url": "https://api.github.com/repos/octo/widgets"})
    assert repo.owner == "octo"
    assert repo.name == "widgets"
    assert repo.full_name == "octo/widgets"
    assert repo.url == "https://github.com/octo/widgets"
    assert repo.private is False


def test_parse_repository_private_heuristic():
    repo = parse_repository({"repository_url": "https://api.github.com/repos/octo/private-notes"})
    assert repo.private is True


def test_parse_repository_prefers_embedded_visibility():
    repo = parse_repository(
        {"repository_url": "https://api.github.com/repos/octo/private-notes", "repository": {"private": False}}
    )
    assert repo.private is False


def test_to_issue_maps_fields():
    issue = to_issue(_item(4, labels=[{"name": "bug"}, "triage"], body=""), "alice")
    assert issue.id == 1004
    assert issue.labels == ["bug", "triage"]
    assert issue.author == "alice"
    assert issue.body is None
    assert issue.repository.full_name == "octo/widgets"


def test_to_pull_request_uses_detail_and_base_visibility():
    detail = _detail(7, base={"repo": {"private": True}})
    pr = to_pull_request(_item(7), detail, "alice")
    assert pr.id == 5007
    assert pr.reviewers == ["bob"]
    assert pr.labels == ["enhancement"]
    assert pr.changed_files == 1
    assert pr.repository.private is True


# ---------------------------------------------------------------------------
# collect_pull_requests
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_collect_pull_requests_enriches_each_item(client):
    _one_window(client, [_item(1), _item(2)])
    client.get_pull_request.side_effect = lambda owner, repo, number: _detail(number)

    prs = await ActivityCollector(client, "alice").collect_pull_requests()

    assert [pr.number for pr in prs] == [1, 2]
    client.get_pull_request.assert_any_await("octo", "widgets", 1)
    query = client.search_issues.await_args_list[0].args[0]
    assert query.startswith("author:alice type:pr created:<")


@pytest.mark.asyncio
async def test_failed_detail_skips_only_that_item(client, caplog):
    _one_window(client, [_item(n) for n in range(1, 6)])

    async def get_pull_request(owner, repo, number):
        if number == 3:
            raise GithubException(404, {"message": "Not Found"}, None)
        return _detail(number)

    client.get_pull_request.side_effect = get_pull_request

    with caplog.at_level(logging.WARNING, logger="ghactivity_core.collector"):
        prs = await ActivityCollector(client, "alice").collect_pull_requests()

    assert [pr.number for pr in prs] == [1, 2, 4, 5]
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "octo/widgets#3" in warnings[0].getMessage()


@pytest.mark.asyncio
async def test_search_failure_raises_fetch_error(client):
    client.search_issues.side_effect = GithubException(401, {"message": "Bad credentials"}, None)

    with pytest.raises(FetchError, match="Failed to fetch pull requests"):
        await ActivityCollector(client, "alice").collect_pull_requests()


# ---------------------------------------------------------------------------
# collect_issues
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_collect_issues_needs_no_extra_calls(client):
    _one_window(client, [_item(1), _item(2, state="closed")])

    issues = await ActivityCollector(client, "alice").collect_issues()

    assert [i.number for i in issues] == [1, 2]
    assert issues[1].state == "closed"
    client.get_pull_request.assert_not_awaited()
    client.list_reviews.assert_not_awaited()
    query = client.search_issues.await_args_list[0].args[0]
    assert query.startswith("author:alice type:issue created:<")


@pytest.mark.asyncio
async def test_collect_issues_failure_raises_fetch_error(client):
    client.search_issues.side_effect = GithubException(500, {"message": "boom"}, None)

    with pytest.raises(FetchError, match="Failed to fetch issues"):
        await ActivityCollector(client, "alice").collect_issues()


# ---------------------------------------------------------------------------
# collect_reviews
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_collect_reviews_keeps_only_the_users_reviews(client):
    _one_window(client, [_item(8, updated_at="2023-05-03T10:00:00Z")])
    client.list_reviews.return_value = [
        {"id": 1, "user": {"login": "alice"}, "state": "APPROVED", "submitted_at": "2023-05-02T10:00:00Z"},
        {"id": 2, "user": {"login": "bob"}, "state": "COMMENTED", "submitted_at": "2023-05-02T11:00:00Z"},
        {"id": 3, "user": {"login": "Alice"}, "state": "CHANGES_REQUESTED", "submitted_at": "2023-05-02T12:00:00Z"},
    ]

    reviews = await ActivityCollector(client, "alice").collect_reviews()

    assert [r.id for r in reviews] == [1, 3]
    assert all(r.author == "alice" for r in reviews)
    assert reviews[0].pull_request_number == 8
    assert reviews[0].pull_request_title == "Item 8"
    query, sort = client.search_issues.await_args_list[0].args[:2]
    assert query.startswith("reviewed-by:alice type:pr updated:<")
    assert sort == "updated"


@pytest.mark.asyncio
async def test_pending_review_gets_fetch_time(client):
    _one_window(client, [_item(8)])
    client.list_reviews.return_value = [{"id": 1, "user": {"login": "alice"}, "state": "PENDING"}]

    reviews = await ActivityCollector(client, "alice").collect_reviews()

    assert reviews[0].submitted_at


@pytest.mark.asyncio
async def test_failed_review_list_skips_pr(client, caplog):
    _one_window(client, [_item(1), _item(2)])

    async def list_reviews(owner, repo, number):
        if number == 1:
            raise GithubException(403, {"message": "Forbidden"}, None)
        return [{"id": 20, "user": {"login": "alice"}, "state": "APPROVED", "submitted_at": "2023-05-02T10:00:00Z"}]

    client.list_reviews.side_effect = list_reviews

    with caplog.at_level(logging.WARNING, logger="ghactivity_core.collector"):
        reviews = await ActivityCollector(client, "alice").collect_reviews()

    assert [r.id for r in reviews] == [20]
    assert len([r for r in caplog.records if r.levelno == logging.WARNING]) == 1


def test_to_review_normalises_state(caplog):
    item = _item(8)
    fetched_at = "2023-05-05T00:00:00+00:00"

    assert to_review(item, {"id": 1, "state": "approved"}, "alice", fetched_at).state == "APPROVED"

    with caplog.at_level(logging.WARNING, logger="ghactivity_core.collector"):
        review = to_review(item, {"id": 2, "state": "SHRUGGED"}, "alice", fetched_at)

    assert review.state == "COMMENTED"
    assert review.submitted_at == fetched_at
    assert len([r for r in caplog.records if r.levelno == logging.WARNING]) == 1
