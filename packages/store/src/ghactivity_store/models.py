"""Activity record models.

Decoupled from ghactivity_core so the store layer can be used on its own and
the core has no knowledge of how snapshots are persisted.

The dict helpers at the bottom produce the canonical JSON interchange shape
(camelCase keys). Both backends return ActivityData, so this shape is what any
consumer of a snapshot sees regardless of where it was stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field

PULL_REQUESTS = "pullRequests"
ISSUES = "issues"
REVIEWS = "reviews"
KINDS = (PULL_REQUESTS, ISSUES, REVIEWS)

REVIEW_STATES = ("APPROVED", "CHANGES_REQUESTED", "COMMENTED", "DISMISSED", "PENDING")


@dataclass
class Repository:
    """Repository descriptor embedded by value in every record."""

    name: str
    full_name: str  # "owner/name"
    owner: str
    url: str
    private: bool = False


@dataclass
class PullRequest:
    id: int
    number: int
    title: str
    url: str
    html_url: str
    state: str  # "open" | "closed"
    created_at: str
    updated_at: str
    repository: Repository
    author: str
    closed_at: str | None = None
    merged_at: str | None = None
    draft: bool = False
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    reviewers: list[str] = field(default_factory=list)
    commits: int = 0
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0


@dataclass
class Issue:
    id: int
    number: int
    title: str
    url: str
    html_url: str
    state: str  # "open" | "closed"
    created_at: str
    updated_at: str
    repository: Repository
    author: str
    closed_at: str | None = None
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    comments: int = 0
    body: str | None = None


@dataclass
class Review:
    """A review submitted by the tracked user on someone's pull request."""

    id: int
    pull_request_number: int
    pull_request_title: str
    pull_request_url: str
    state: str  # one of REVIEW_STATES
    submitted_at: str
    repository: Repository
    author: str
    html_url: str
    body: str | None = None


@dataclass
class ActivityMetadata:
    last_updated: str  # ISO-8601 UTC timestamp
    username: str
    total_pull_requests: int = 0
    total_issues: int = 0
    total_reviews: int = 0


@dataclass
class ActivityData:
    """Snapshot of all three record collections plus metadata."""

    metadata: ActivityMetadata
    pull_requests: list[PullRequest] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    reviews: list[Review] = field(default_factory=list)

    def records(self, kind: str) -> list:
        """Return the collection addressed by an interchange key."""
        if kind == PULL_REQUESTS:
            return self.pull_requests
        if kind == ISSUES:
            return self.issues
        if kind == REVIEWS:
            return self.reviews
        raise ValueError(f"Unknown record kind: {kind!r}. Choose one of {', '.join(KINDS)}.")

    def set_records(self, kind: str, items: list) -> None:
        """Replace one collection and recompute its total."""
        if kind == PULL_REQUESTS:
            self.pull_requests = list(items)
            self.metadata.total_pull_requests = len(self.pull_requests)
        elif kind == ISSUES:
            self.issues = list(items)
            self.metadata.total_issues = len(self.issues)
        elif kind == REVIEWS:
            self.reviews = list(items)
            self.metadata.total_reviews = len(self.reviews)
        else:
            raise ValueError(f"Unknown record kind: {kind!r}. Choose one of {', '.join(KINDS)}.")


def empty_activity(last_updated: str, username: str = "") -> ActivityData:
    return ActivityData(metadata=ActivityMetadata(last_updated=last_updated, username=username))


# ---------------------------------------------------------------------------
# JSON interchange shape
# ---------------------------------------------------------------------------


def _optional(d: dict, key: str, value) -> None:
    if value is not None:
        d[key] = value


def repository_to_dict(repo: Repository) -> dict:
    return {
        "name": repo.name,
        "fullName": repo.full_name,
        "owner": repo.owner,
        "url": repo.url,
        "private": repo.private,
    }


def repository_from_dict(d: dict | None) -> Repository:
    d = d or {}
    return Repository(
        name=d.get("name", ""),
        full_name=d.get("fullName", ""),
        owner=d.get("owner", ""),
        url=d.get("url", ""),
        private=bool(d.get("private", False)),
    )


def pull_request_to_dict(pr: PullRequest) -> dict:
    d = {
        "id": pr.id,
        "number": pr.number,
        "title": pr.title,
        "url": pr.url,
        "htmlUrl": pr.html_url,
        "state": pr.state,
        "createdAt": pr.created_at,
        "updatedAt": pr.updated_at,
    }
    _optional(d, "closedAt", pr.closed_at)
    _optional(d, "mergedAt", pr.merged_at)
    d.update(
        {
            "repository": repository_to_dict(pr.repository),
            "author": pr.author,
            "draft": pr.draft,
            "labels": list(pr.labels),
            "assignees": list(pr.assignees),
            "reviewers": list(pr.reviewers),
            "commits": pr.commits,
            "additions": pr.additions,
            "deletions": pr.deletions,
            "changedFiles": pr.changed_files,
        }
    )
    return d


def pull_request_from_dict(d: dict) -> PullRequest:
    return PullRequest(
        id=d["id"],
        number=d.get("number", 0),
        title=d.get("title", ""),
        url=d.get("url", ""),
        html_url=d.get("htmlUrl", ""),
        state=d.get("state", "open"),
        created_at=d.get("createdAt", ""),
        updated_at=d.get("updatedAt", ""),
        closed_at=d.get("closedAt"),
        merged_at=d.get("mergedAt"),
        repository=repository_from_dict(d.get("repository")),
        author=d.get("author", ""),
        draft=bool(d.get("draft", False)),
        labels=list(d.get("labels", [])),
        assignees=list(d.get("assignees", [])),
        reviewers=list(d.get("reviewers", [])),
        commits=d.get("commits", 0),
        additions=d.get("additions", 0),
        deletions=d.get("deletions", 0),
        changed_files=d.get("changedFiles", 0),
    )


def issue_to_dict(issue: Issue) -> dict:
    d = {
        "id": issue.id,
        "number": issue.number,
        "title": issue.title,
        "url": issue.url,
        "htmlUrl": issue.html_url,
        "state": issue.state,
        "createdAt": issue.created_at,
        "updatedAt": issue.updated_at,
    }
    _optional(d, "closedAt", issue.closed_at)
    d.update(
        {
            "repository": repository_to_dict(issue.repository),
            "author": issue.author,
            "labels": list(issue.labels),
            "assignees": list(issue.assignees),
            "comments": issue.comments,
        }
    )
    _optional(d, "body", issue.body)
    return d


def issue_from_dict(d: dict) -> Issue:
    return Issue(
        id=d["id"],
        number=d.get("number", 0),
        title=d.get("title", ""),
        url=d.get("url", ""),
        html_url=d.get("htmlUrl", ""),
        state=d.get("state", "open"),
        created_at=d.get("createdAt", ""),
        updated_at=d.get("updatedAt", ""),
        closed_at=d.get("closedAt"),
        repository=repository_from_dict(d.get("repository")),
        author=d.get("author", ""),
        labels=list(d.get("labels", [])),
        assignees=list(d.get("assignees", [])),
        comments=d.get("comments", 0),
        body=d.get("body"),
    )


def review_to_dict(review: Review) -> dict:
    d = {
        "id": review.id,
        "pullRequestNumber": review.pull_request_number,
        "pullRequestTitle": review.pull_request_title,
        "pullRequestUrl": review.pull_request_url,
        "state": review.state,
        "submittedAt": review.submitted_at,
        "repository": repository_to_dict(review.repository),
        "author": review.author,
    }
    _optional(d, "body", review.body)
    d["htmlUrl"] = review.html_url
    return d


def review_from_dict(d: dict) -> Review:
    return Review(
        id=d["id"],
        pull_request_number=d.get("pullRequestNumber", 0),
        pull_request_title=d.get("pullRequestTitle", ""),
        pull_request_url=d.get("pullRequestUrl", ""),
        state=d.get("state", "COMMENTED"),
        submitted_at=d.get("submittedAt", ""),
        repository=repository_from_dict(d.get("repository")),
        author=d.get("author", ""),
        html_url=d.get("htmlUrl", ""),
        body=d.get("body"),
    )


def activity_to_dict(data: ActivityData) -> dict:
    meta = data.metadata
    return {
        "pullRequests": [pull_request_to_dict(pr) for pr in data.pull_requests],
        "issues": [issue_to_dict(i) for i in data.issues],
        "reviews": [review_to_dict(r) for r in data.reviews],
        "metadata": {
            "lastUpdated": meta.last_updated,
            "username": meta.username,
            "totalPullRequests": meta.total_pull_requests,
            "totalIssues": meta.total_issues,
            "totalReviews": meta.total_reviews,
        },
    }


def activity_from_dict(d: dict) -> ActivityData:
    meta = d.get("metadata") or {}
    pull_requests = [pull_request_from_dict(pr) for pr in d.get("pullRequests", [])]
    issues = [issue_from_dict(i) for i in d.get("issues", [])]
    reviews = [review_from_dict(r) for r in d.get("reviews", [])]
    return ActivityData(
        pull_requests=pull_requests,
        issues=issues,
        reviews=reviews,
        metadata=ActivityMetadata(
            last_updated=meta.get("lastUpdated", ""),
            username=meta.get("username", ""),
            total_pull_requests=meta.get("totalPullRequests", len(pull_requests)),
            total_issues=meta.get("totalIssues", len(issues)),
            total_reviews=meta.get("totalReviews", len(reviews)),
        ),
    )
