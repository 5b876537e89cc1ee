"""Resource fetchers that map raw GitHub payloads into pipeline records."""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional

import requests

from ..models import (
    BasicInfo,
    CommitRecord,
    ContributorRecord,
    IssueRecord,
    PullRequestRecord,
    RepoId,
)
from .config import BASE_URL
from .http_client import get_json, paged_get

GITHUB_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def parse_github_timestamp(raw: Optional[str]) -> Optional[dt.datetime]:
    """Parse a GitHub timestamp into an aware UTC datetime; None when absent or malformed."""
    if not raw or not isinstance(raw, str):
        return None
    try:
        return dt.datetime.strptime(raw, GITHUB_TIMESTAMP_FORMAT).replace(tzinfo=dt.timezone.utc)
    except ValueError:
        pass
    try:
        parsed = dt.datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc)


def github_timestamp(value: dt.datetime) -> str:
    """Format a datetime the way GitHub query parameters expect it."""
    if value.tzinfo is not None:
        value = value.astimezone(dt.timezone.utc)
    return value.strftime(GITHUB_TIMESTAMP_FORMAT)


def one_line(msg: Optional[str]) -> str:
    """Return the first line of a commit message."""
    if not msg:
        return ""
    return msg.splitlines()[0].strip()


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _login(user_obj: Any) -> Optional[str]:
    if not isinstance(user_obj, dict):
        return None
    return user_obj.get("login") or None


def get_repo_meta(session: requests.Session, repo_id: RepoId, *, log: Any) -> Optional[BasicInfo]:
    """Fetch repository metadata; None means the repo cannot be analysed."""
    data = get_json(session, f"{BASE_URL}/repos/{repo_id}",
                    context=f"basic info for {repo_id}", log=log)
    if data is None:
        return None
    if not isinstance(data, dict):
        log.error("basic_info.malformed", repo=repo_id, payload_type=type(data).__name__)
        return None

    created_at = parse_github_timestamp(data.get("created_at"))
    updated_at = parse_github_timestamp(data.get("updated_at"))
    if created_at is None or updated_at is None:
        log.error("basic_info.missing_timestamps", repo=repo_id,
                  created_at=data.get("created_at"), updated_at=data.get("updated_at"))
        return None

    owner_fallback, _, short_fallback = repo_id.partition("/")
    return BasicInfo(
        name=repo_id,
        owner_login=_login(data.get("owner")) or owner_fallback,
        short_name=data.get("name") or short_fallback,
        description=data.get("description"),
        stars=_as_int(data.get("stargazers_count")) or 0,
        forks=_as_int(data.get("forks_count")) or 0,
        primary_language=data.get("language") or None,
        created_at=created_at,
        updated_at=updated_at,
        is_fork=bool(data.get("fork")),
        is_archived=bool(data.get("archived")),
    )


def get_issues(session: requests.Session, repo_id: RepoId, *, log: Any) -> Optional[List[IssueRecord]]:
    """Return every issue (open and closed, pull requests excluded) or None on failure."""
    raw = paged_get(session, f"{BASE_URL}/repos/{repo_id}/issues",
                    params={"state": "all"}, context=f"issues for {repo_id}", log=log)
    if raw is None:
        return None

    issues: List[IssueRecord] = []
    for entry in raw:
        if not isinstance(entry, dict) or "pull_request" in entry:
            continue
        number = _as_int(entry.get("number"))
        if number is None:
            log.warning("issues.entry_skipped", repo=repo_id, reason="missing number")
            continue
        issues.append(IssueRecord(
            repo_name=repo_id,
            number=number,
            state=str(entry.get("state") or "").lower(),
            created_at=parse_github_timestamp(entry.get("created_at")),
            closed_at=parse_github_timestamp(entry.get("closed_at")),
        ))
    return issues


def get_contributors(session: requests.Session,
                     repo_id: RepoId,
                     *,
                     log: Any) -> Optional[List[ContributorRecord]]:
    """Return per-login contribution counts; malformed entries are skipped."""
    raw = paged_get(session, f"{BASE_URL}/repos/{repo_id}/contributors",
                    context=f"contributors for {repo_id}", log=log)
    if raw is None:
        return None

    contributors: List[ContributorRecord] = []
    for entry in raw:
        entry = entry if isinstance(entry, dict) else {}
        login = entry.get("login")
        contributions = _as_int(entry.get("contributions"))
        if not login or contributions is None:
            log.warning("contributors.entry_skipped", repo=repo_id,
                        login=login, contributions=entry.get("contributions"))
            continue
        contributors.append(ContributorRecord(repo_id, login, contributions))
    if not contributors:
        log.debug("contributors.none", repo=repo_id)
    return contributors


def get_commits(session: requests.Session,
                repo_id: RepoId,
                *,
                since: dt.datetime,
                log: Any) -> Optional[List[CommitRecord]]:
    """Return commits dated on or after ``since``, keyed on committer then author date."""
    raw = paged_get(session, f"{BASE_URL}/repos/{repo_id}/commits",
                    params={"since": github_timestamp(since)},
                    context=f"commits for {repo_id}", log=log)
    if raw is None:
        return None

    commits: List[CommitRecord] = []
    for entry in raw:
        entry = entry if isinstance(entry, dict) else {}
        sha = entry.get("sha")
        if not sha:
            log.warning("commits.entry_skipped", repo=repo_id, reason="missing sha")
            continue
        commit_obj: Dict[str, Any] = entry.get("commit") or {}
        committer_obj = commit_obj.get("committer") or {}
        author_obj = commit_obj.get("author") or {}

        record = CommitRecord(
            repo_name=repo_id,
            sha=sha,
            committer_login=_login(entry.get("committer")),
            committer_date=parse_github_timestamp(committer_obj.get("date")),
            author_login=_login(entry.get("author")),
            author_date=parse_github_timestamp(author_obj.get("date")),
            message_summary=one_line(commit_obj.get("message")),
        )
        primary = record.primary_date
        if primary is None:
            log.warning("commits.missing_dates", repo=repo_id, sha=sha)
            continue
        if primary < since:
            log.warning("commits.older_than_since", repo=repo_id, sha=sha,
                        commit_date=primary.isoformat(), since=since.isoformat())
            continue
        commits.append(record)
    return commits


def _to_pull_request(repo_id: RepoId, entry: Any, log: Any) -> Optional[PullRequestRecord]:
    entry = entry if isinstance(entry, dict) else {}
    number = _as_int(entry.get("number"))
    if number is None:
        log.warning("pull_requests.entry_skipped", repo=repo_id, reason="missing number")
        return None
    return PullRequestRecord(
        repo_name=repo_id,
        number=number,
        state=str(entry.get("state") or "").lower(),
        created_at=parse_github_timestamp(entry.get("created_at")),
        closed_at=parse_github_timestamp(entry.get("closed_at")),
        merged_at=parse_github_timestamp(entry.get("merged_at")),
    )


def get_pull_requests(session: requests.Session,
                      repo_id: RepoId,
                      *,
                      log: Any) -> Optional[List[PullRequestRecord]]:
    """Fetch open and closed (including merged) PRs; degrade to whichever half succeeded."""
    url = f"{BASE_URL}/repos/{repo_id}/pulls"
    open_raw = paged_get(session, url, params={"state": "open"},
                         context=f"open PRs for {repo_id}", log=log)
    if open_raw is None:
        log.warning("pull_requests.open_failed", repo=repo_id)
    closed_raw = paged_get(session, url, params={"state": "closed"},
                           context=f"closed/merged PRs for {repo_id}", log=log)
    if closed_raw is None:
        log.warning("pull_requests.closed_failed", repo=repo_id)

    combined = (open_raw or []) + (closed_raw or [])
    if not combined and (open_raw is None or closed_raw is None):
        log.warning("pull_requests.unavailable", repo=repo_id)
        return None

    pull_requests: List[PullRequestRecord] = []
    for entry in combined:
        record = _to_pull_request(repo_id, entry, log)
        if record is not None:
            pull_requests.append(record)
    return pull_requests


__all__ = [
    "GITHUB_TIMESTAMP_FORMAT",
    "parse_github_timestamp",
    "github_timestamp",
    "one_line",
    "get_repo_meta",
    "get_issues",
    "get_contributors",
    "get_commits",
    "get_pull_requests",
]
