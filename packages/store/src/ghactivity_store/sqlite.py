"""SQLiteStore - relational snapshot store for large histories.

Schema:
  pull_requests  - one row per PR authored by the user.
  issues         - one row per issue authored by the user.
  reviews        - one row per review, linked to its PR through pr_id.
  snapshot_meta  - key/value pairs: username, last_updated.

Repository descriptors are stored as columns on each row rather than in a
separate table. Reviews find their parent PR by (pr_number, repo_owner,
repo_name); a review whose PR is not stored is dropped with a warning. That
natural-key join breaks if a repository is deleted and recreated with reused
PR numbers.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from ghactivity_store.base import BaseStore, StorageError, ensure_parent_dir, utc_now
from ghactivity_store.models import (
    ISSUES,
    PULL_REQUESTS,
    REVIEWS,
    ActivityData,
    ActivityMetadata,
    Issue,
    PullRequest,
    Repository,
    Review,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS pull_requests (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    github_id       INTEGER UNIQUE NOT NULL,
    pr_number       INTEGER NOT NULL,
    title           TEXT NOT NULL,
    api_url         TEXT,
    html_url        TEXT,
    state           TEXT NOT NULL CHECK(state IN ('open', 'closed')),
    repo_owner      TEXT NOT NULL,
    repo_name       TEXT NOT NULL,
    repo_full_name  TEXT,
    repo_url        TEXT,
    repo_private    INTEGER DEFAULT 0,
    author          TEXT NOT NULL,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    closed_at       TEXT,
    merged_at       TEXT,
    draft           INTEGER DEFAULT 0,
    commits         INTEGER DEFAULT 0,
    additions       INTEGER DEFAULT 0,
    deletions       INTEGER DEFAULT 0,
    changed_files   INTEGER DEFAULT 0,
    labels_json     TEXT DEFAULT '[]',
    assignees_json  TEXT DEFAULT '[]',
    reviewers_json  TEXT DEFAULT '[]'
);
CREATE INDEX IF NOT EXISTS idx_pr_repo_number ON pull_requests (repo_owner, repo_name, pr_number);
CREATE INDEX IF NOT EXISTS idx_pr_created     ON pull_requests (created_at DESC);

CREATE TABLE IF NOT EXISTS issues (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    github_id       INTEGER UNIQUE NOT NULL,
    issue_number    INTEGER NOT NULL,
    title           TEXT NOT NULL,
    api_url         TEXT,
    html_url        TEXT,
    state           TEXT NOT NULL CHECK(state IN ('open', 'closed')),
    repo_owner      TEXT NOT NULL,
    repo_name       TEXT NOT NULL,
    repo_full_name  TEXT,
    repo_url        TEXT,
    repo_private    INTEGER DEFAULT 0,
    author          TEXT NOT NULL,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    closed_at       TEXT,
    comments_count  INTEGER DEFAULT 0,
    body            TEXT,
    labels_json     TEXT DEFAULT '[]',
    assignees_json  TEXT DEFAULT '[]'
);
CREATE INDEX IF NOT EXISTS idx_issue_created ON issues (created_at DESC);

CREATE TABLE IF NOT EXISTS reviews (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    github_id       INTEGER UNIQUE NOT NULL,
    pr_id           INTEGER NOT NULL,
    reviewer        TEXT NOT NULL,
    state           TEXT NOT NULL
                    CHECK(state IN ('APPROVED', 'CHANGES_REQUESTED', 'COMMENTED', 'DISMISSED', 'PENDING')),
    body            TEXT,
    submitted_at    TEXT NOT NULL,
    html_url        TEXT,
    pr_number       INTEGER NOT NULL,
    pr_title        TEXT,
    pr_url          TEXT,
    repo_owner      TEXT NOT NULL,
    repo_name       TEXT NOT NULL,
    repo_full_name  TEXT,
    repo_url        TEXT,
    repo_private    INTEGER DEFAULT 0,
    FOREIGN KEY (pr_id) REFERENCES pull_requests(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_review_pr        ON reviews (pr_id);
CREATE INDEX IF NOT EXISTS idx_review_submitted ON reviews (submitted_at DESC);

CREATE TABLE IF NOT EXISTS snapshot_meta (
    key   TEXT PRIMARY KEY,
    value TEXT
);
"""

_UPSERT_PR = """
INSERT INTO pull_requests
  (github_id, pr_number, title, api_url, html_url, state,
   repo_owner, repo_name, repo_full_name, repo_url, repo_private, author,
   created_at, updated_at, closed_at, merged_at, draft,
   commits, additions, deletions, changed_files,
   labels_json, assignees_json, reviewers_json)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(github_id) DO UPDATE SET
  pr_number=excluded.pr_number, title=excluded.title, api_url=excluded.api_url,
  html_url=excluded.html_url, state=excluded.state, repo_owner=excluded.repo_owner,
  repo_name=excluded.repo_name, repo_full_name=excluded.repo_full_name,
  repo_url=excluded.repo_url, repo_private=excluded.repo_private, author=excluded.author,
  created_at=excluded.created_at, updated_at=excluded.updated_at,
  closed_at=excluded.closed_at, merged_at=excluded.merged_at, draft=excluded.draft,
  commits=excluded.commits, additions=excluded.additions, deletions=excluded.deletions,
  changed_files=excluded.changed_files, labels_json=excluded.labels_json,
  assignees_json=excluded.assignees_json, reviewers_json=excluded.reviewers_json
"""

_UPSERT_ISSUE = """
INSERT INTO issues
  (github_id, issue_number, title, api_url, html_url, state,
   repo_owner, repo_name, repo_full_name, repo_url, repo_private, author,
   created_at, updated_at, closed_at, comments_count, body,
   labels_json, assignees_json)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(github_id) DO UPDATE SET
  issue_number=excluded.issue_number, title=excluded.title, api_url=excluded.api_url,
  html_url=excluded.html_url, state=excluded.state, repo_owner=excluded.repo_owner,
  repo_name=excluded.repo_name, repo_full_name=excluded.repo_full_name,
  repo_url=excluded.repo_url, repo_private=excluded.repo_private, author=excluded.author,
  created_at=excluded.created_at, updated_at=excluded.updated_at,
  closed_at=excluded.closed_at, comments_count=excluded.comments_count, body=excluded.body,
  labels_json=excluded.labels_json, assignees_json=excluded.assignees_json
"""

_UPSERT_REVIEW = """
INSERT INTO reviews
  (github_id, pr_id, reviewer, state, body, submitted_at, html_url,
   pr_number, pr_title, pr_url,
   repo_owner, repo_name, repo_full_name, repo_url, repo_private)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(github_id) DO UPDATE SET
  pr_id=excluded.pr_id, reviewer=excluded.reviewer, state=excluded.state,
  body=excluded.body, submitted_at=excluded.submitted_at, html_url=excluded.html_url,
  pr_number=excluded.pr_number, pr_title=excluded.pr_title, pr_url=excluded.pr_url,
  repo_owner=excluded.repo_owner, repo_name=excluded.repo_name,
  repo_full_name=excluded.repo_full_name, repo_url=excluded.repo_url,
  repo_private=excluded.repo_private
"""


class SQLiteStore(BaseStore):
    """Stores the activity snapshot in a local SQLite database file.

    Each write runs inside a single transaction so a crash mid-write cannot
    leave reviews pointing at missing pull requests. Re-appending a known id
    overwrites the stored row (last write wins).
    """

    def __init__(self, db_path: str = "data/activities.db"):
        self._db_path = str(Path(db_path).expanduser())
        try:
            ensure_parent_dir(self._db_path)
            self._conn = sqlite3.connect(self._db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Failed to initialize database {db_path}: {e}") from e

    @property
    def path(self) -> str:
        return self._db_path

    def save(self, data: ActivityData) -> None:
        try:
            with self._conn:
                self._conn.execute("DELETE FROM reviews")
                self._conn.execute("DELETE FROM pull_requests")
                self._conn.execute("DELETE FROM issues")
                self._insert_pull_requests(data.pull_requests)
                self._insert_issues(data.issues)
                self._insert_reviews(data.reviews)
                self._set_meta("username", data.metadata.username)
                self._set_meta("last_updated", data.metadata.last_updated or utc_now())
        except sqlite3.Error as e:
            raise StorageError(f"Failed to save data to {self._db_path}: {e}") from e

    def append(self, kind: str, items: list) -> None:
        if kind not in (PULL_REQUESTS, ISSUES, REVIEWS):
            raise ValueError(f"Unknown record kind: {kind!r}")
        try:
            with self._conn:
                if kind == PULL_REQUESTS:
                    self._insert_pull_requests(items)
                elif kind == ISSUES:
                    self._insert_issues(items)
                else:
                    self._insert_reviews(items)
                if self._get_meta("username") is None:
                    self._set_meta("username", "")
                self._set_meta("last_updated", utc_now())
        except sqlite3.Error as e:
            raise StorageError(f"Failed to append {kind} to {self._db_path}: {e}") from e

    def load(self) -> ActivityData | None:
        try:
            pr_rows = self._conn.execute("SELECT * FROM pull_requests ORDER BY created_at DESC, id").fetchall()
            issue_rows = self._conn.execute("SELECT * FROM issues ORDER BY created_at DESC, id").fetchall()
            review_rows = self._conn.execute("SELECT * FROM reviews ORDER BY submitted_at DESC, id").fetchall()
            username = self._get_meta("username")
            last_updated = self._get_meta("last_updated")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to load data from {self._db_path}: {e}") from e

        if not pr_rows and not issue_rows and not review_rows and last_updated is None:
            return None

        try:
            pull_requests = [self._row_to_pull_request(r) for r in pr_rows]
            issues = [self._row_to_issue(r) for r in issue_rows]
            reviews = [self._row_to_review(r) for r in review_rows]
        except (json.JSONDecodeError, TypeError) as e:
            raise StorageError(f"Failed to load data from {self._db_path}: {e}") from e

        if not username:
            for records in (pull_requests, issues, reviews):
                if records:
                    username = records[0].author
                    break

        return ActivityData(
            pull_requests=pull_requests,
            issues=issues,
            reviews=reviews,
            metadata=ActivityMetadata(
                last_updated=last_updated or utc_now(),
                username=username or "",
                total_pull_requests=len(pull_requests),
                total_issues=len(issues),
                total_reviews=len(reviews),
            ),
        )

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------ #
    # Writes (callers own the transaction)                                #
    # ------------------------------------------------------------------ #

    def _insert_pull_requests(self, pull_requests: list[PullRequest]) -> None:
        for pr in pull_requests:
            repo = pr.repository
            self._conn.execute(
                _UPSERT_PR,
                (
                    pr.id,
                    pr.number,
                    pr.title,
                    pr.url,
                    pr.html_url,
                    pr.state,
                    repo.owner,
                    repo.name,
                    repo.full_name,
                    repo.url,
                    int(repo.private),
                    pr.author,
                    pr.created_at,
                    pr.updated_at,
                    pr.closed_at,
                    pr.merged_at,
                    int(pr.draft),
                    pr.commits,
                    pr.additions,
                    pr.deletions,
                    pr.changed_files,
                    json.dumps(pr.labels),
                    json.dumps(pr.assignees),
                    json.dumps(pr.reviewers),
                ),
            )

    def _insert_issues(self, issues: list[Issue]) -> None:
        for issue in issues:
            repo = issue.repository
            self._conn.execute(
                _UPSERT_ISSUE,
                (
                    issue.id,
                    issue.number,
                    issue.title,
                    issue.url,
                    issue.html_url,
                    issue.state,
                    repo.owner,
                    repo.name,
                    repo.full_name,
                    repo.url,
                    int(repo.private),
                    issue.author,
                    issue.created_at,
                    issue.updated_at,
                    issue.closed_at,
                    issue.comments,
                    issue.body,
                    json.dumps(issue.labels),
                    json.dumps(issue.assignees),
                ),
            )

    def _insert_reviews(self, reviews: list[Review]) -> None:
        for review in reviews:
            repo = review.repository
            row = self._conn.execute(
                "SELECT id FROM pull_requests WHERE pr_number=? AND repo_owner=? AND repo_name=? LIMIT 1",
                (review.pull_request_number, repo.owner, repo.name),
            ).fetchone()
            if row is None:
                logger.warning(
                    "Dropping review %s: pull request %s#%d is not stored",
                    review.id,
                    repo.full_name or f"{repo.owner}/{repo.name}",
                    review.pull_request_number,
                )
                continue
            self._conn.execute(
                _UPSERT_REVIEW,
                (
                    review.id,
                    row["id"],
                    review.author,
                    review.state,
                    review.body,
                    review.submitted_at,
                    review.html_url,
                    review.pull_request_number,
                    review.pull_request_title,
                    review.pull_request_url,
                    repo.owner,
                    repo.name,
                    repo.full_name,
                    repo.url,
                    int(repo.private),
                ),
            )

    def _get_meta(self, key: str) -> str | None:
        row = self._conn.execute("SELECT value FROM snapshot_meta WHERE key=?", (key,)).fetchone()
        return None if row is None else row["value"]

    def _set_meta(self, key: str, value: str) -> None:
        self._conn.execute(
            "INSERT INTO snapshot_meta (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (key, value),
        )

    # ------------------------------------------------------------------ #
    # Row mapping                                                         #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _row_to_repository(row: sqlite3.Row) -> Repository:
        owner, name = row["repo_owner"], row["repo_name"]
        return Repository(
            name=name,
            full_name=row["repo_full_name"] or f"{owner}/{name}",
            owner=owner,
            url=row["repo_url"] or f"https://github.com/{owner}/{name}",
            private=bool(row["repo_private"]),
        )

    @staticmethod
    def _row_to_pull_request(row: sqlite3.Row) -> PullRequest:
        return PullRequest(
            id=row["github_id"],
            number=row["pr_number"],
            title=row["title"],
            url=row["api_url"] or "",
            html_url=row["html_url"] or "",
            state=row["state"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            closed_at=row["closed_at"],
            merged_at=row["merged_at"],
            repository=SQLiteStore._row_to_repository(row),
            author=row["author"],
            draft=bool(row["draft"]),
            labels=json.loads(row["labels_json"] or "[]"),
            assignees=json.loads(row["assignees_json"] or "[]"),
            reviewers=json.loads(row["reviewers_json"] or "[]"),
            commits=row["commits"],
            additions=row["additions"],
            deletions=row["deletions"],
            changed_files=row["changed_files"],
        )

    @staticmethod
    def _row_to_issue(row: sqlite3.Row) -> Issue:
        return Issue(
            id=row["github_id"],
            number=row["issue_number"],
            title=row["title"],
            url=row["api_url"] or "",
            html_url=row["html_url"] or "",
            state=row["state"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            closed_at=row["closed_at"],
            repository=SQLiteStore._row_to_repository(row),
            author=row["author"],
            labels=json.loads(row["labels_json"] or "[]"),
            assignees=json.loads(row["assignees_json"] or "[]"),
            comments=row["comments_count"],
            body=row["body"],
        )

    @staticmethod
    def _row_to_review(row: sqlite3.Row) -> Review:
        return Review(
            id=row["github_id"],
            pull_request_number=row["pr_number"],
            pull_request_title=row["pr_title"] or "",
            pull_request_url=row["pr_url"] or "",
            state=row["state"],
            submitted_at=row["submitted_at"],
            repository=SQLiteStore._row_to_repository(row),
            author=row["reviewer"],
            html_url=row["html_url"] or "",
            body=row["body"],
        )
