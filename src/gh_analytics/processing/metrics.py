"""Per-repository metric derivation from fetched records."""

from __future__ import annotations

import datetime as dt
from statistics import mean
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from ..models import (
    BasicInfo,
    CommitRecord,
    IssueCloseTimeRecord,
    IssueRecord,
    PullRequestMetrics,
    PullRequestRecord,
    RepoId,
    RepoMetrics,
)

SECONDS_PER_DAY = 86400.0
RECENT_COMMIT_WINDOW_DAYS = 30


def duration_days(start: dt.datetime, end: dt.datetime) -> float:
    """Signed duration between two instants, in fractional days."""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def resolution_rate(closed: int, total: int) -> Optional[float]:
    """Closed share as a percentage rounded to one decimal; None when there is nothing to resolve."""
    if total <= 0:
        return None
    return round(closed / total * 100, 1)


def count_issues(issues: Optional[Sequence[IssueRecord]]) -> Tuple[int, int]:
    """Return (open, closed); anything not open counts as closed."""
    if not issues:
        return 0, 0
    open_count = sum(1 for issue in issues if issue.state == "open")
    return open_count, len(issues) - open_count


def issue_close_times(repo_name: RepoId,
                      issues: Optional[Iterable[IssueRecord]],
                      *,
                      log: Any) -> List[IssueCloseTimeRecord]:
    """Close durations for closed issues carrying both timestamps; negatives are dropped."""
    records: List[IssueCloseTimeRecord] = []
    for issue in issues or ():
        if issue.state != "closed" or issue.created_at is None or issue.closed_at is None:
            continue
        days = duration_days(issue.created_at, issue.closed_at)
        if days < 0:
            log.warning("issues.negative_close_time", repo=repo_name,
                        issue=issue.number, days=round(days, 3))
            continue
        records.append(IssueCloseTimeRecord(repo_name, issue.number, days, issue.closed_at))
    return records


def commit_counts(commits: Optional[Sequence[CommitRecord]], now: dt.datetime) -> Tuple[int, int]:
    """Return (commits fetched, commits dated within the trailing 30 days of ``now``)."""
    if not commits:
        return 0, 0
    threshold = now.astimezone(dt.timezone.utc) - dt.timedelta(days=RECENT_COMMIT_WINDOW_DAYS)
    recent = 0
    for commit in commits:
        primary = commit.primary_date
        if primary is not None and primary >= threshold:
            recent += 1
    return len(commits), recent


def pull_request_metrics(repo_name: RepoId,
                         pull_requests: Iterable[PullRequestRecord],
                         *,
                         log: Any) -> PullRequestMetrics:
    """Classify PRs as open, merged or closed-unmerged and average the merge time."""
    open_count = closed_count = merged_count = 0
    merge_days: List[float] = []

    for pr in pull_requests:
        if pr.state == "open":
            open_count += 1
            continue
        if pr.merged_at is None:
            closed_count += 1
            continue

        merged_count += 1
        if pr.created_at is None:
            log.warning("pull_requests.missing_created_at", repo=repo_name, pr=pr.number)
            continue
        days = duration_days(pr.created_at, pr.merged_at)
        if days < 0:
            log.warning("pull_requests.negative_merge_time", repo=repo_name,
                        pr=pr.number, days=round(days, 3))
            continue
        merge_days.append(days)

    avg_merge = round(mean(merge_days), 2) if merge_days else None
    return PullRequestMetrics(
        repo_name=repo_name,
        open_pr_count=open_count,
        closed_pr_count=closed_count,
        merged_pr_count=merged_count,
        total_pr_count=open_count + closed_count + merged_count,
        avg_merge_time_days=avg_merge,
    )


def build_repo_metrics(basic_info: BasicInfo,
                       open_issues: int,
                       closed_issues: int,
                       total_commits: int,
                       recent_commits: int,
                       today: dt.date) -> RepoMetrics:
    """Assemble the immutable per-repo metrics once every input is known."""
    total = open_issues + closed_issues
    return RepoMetrics(
        name=basic_info.name,
        stars=basic_info.stars,
        forks=basic_info.forks,
        created_at=basic_info.created_at,
        primary_language=basic_info.primary_language,
        open_issues=open_issues,
        closed_issues=closed_issues,
        total_issues=total,
        issue_resolution_rate=resolution_rate(closed_issues, total),
        total_commits_fetched_period=total_commits,
        monthly_commits_last30d=recent_commits,
        last_api_update=basic_info.updated_at,
        age_days=(today - basic_info.created_at.astimezone(dt.timezone.utc).date()).days,
    )


__all__ = [
    "SECONDS_PER_DAY",
    "RECENT_COMMIT_WINDOW_DAYS",
    "duration_days",
    "resolution_rate",
    "count_issues",
    "issue_close_times",
    "commit_counts",
    "pull_request_metrics",
    "build_repo_metrics",
]
