"""Turn fetched per-repo records into the final ResultBundle."""

from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from ..models import (
    CommitRecord,
    ContributorRecord,
    FetchedData,
    IssueCloseTimeRecord,
    PullRequestMetrics,
    RepoId,
    RepoMetrics,
    ResultBundle,
    frozen_map,
)
from .aggregate import (
    close_time_stats,
    close_time_trend,
    commit_activity,
    contributor_summary,
    language_distribution,
    overall_stats,
)
from .metrics import (
    build_repo_metrics,
    commit_counts,
    count_issues,
    issue_close_times,
    pull_request_metrics,
)

if TYPE_CHECKING:
    from ..pipeline.config import AnalyticsConfig


def process_data(fetched: FetchedData,
                 config: AnalyticsConfig,
                 *,
                 log: Any,
                 now: Optional[dt.datetime] = None,
                 resolution_errors: Optional[Mapping[str, str]] = None) -> ResultBundle:
    """Derive per-repo metrics and cross-repo aggregates for every repo with basic info."""
    now = (now or dt.datetime.now(dt.timezone.utc)).astimezone(dt.timezone.utc)
    today = now.date()
    log.info("processing.start", repos=len(fetched.basic_info))

    repo_metrics: Dict[RepoId, RepoMetrics] = {}
    pr_metrics: Dict[RepoId, PullRequestMetrics] = {}
    close_times: List[IssueCloseTimeRecord] = []
    all_contributors: List[ContributorRecord] = []
    all_commits: List[CommitRecord] = []

    for repo_name in sorted(fetched.basic_info):
        basic_info = fetched.basic_info[repo_name]
        repo_log = log.bind(repo=repo_name)

        issues = fetched.issues.get(repo_name)
        if issues is None:
            repo_log.warning("processing.no_issue_data")
        open_issues, closed_issues = count_issues(issues)
        close_times.extend(issue_close_times(repo_name, issues, log=repo_log))

        commits = fetched.commits.get(repo_name)
        total_commits, recent_commits = commit_counts(commits, now)
        all_commits.extend(commits or ())

        all_contributors.extend(fetched.contributors.get(repo_name) or ())

        pull_requests = fetched.pull_requests.get(repo_name)
        if pull_requests is not None:
            pr_metrics[repo_name] = pull_request_metrics(repo_name, pull_requests, log=repo_log)

        repo_metrics[repo_name] = build_repo_metrics(
            basic_info, open_issues, closed_issues, total_commits, recent_commits, today,
        )
        repo_log.debug("processing.repo_done", open_issues=open_issues,
                       closed_issues=closed_issues, commits=total_commits,
                       commits_last30d=recent_commits)

    stats = close_time_stats(close_times)
    trend = close_time_trend(close_times)
    if stats is None:
        log.info("processing.no_close_times")
    elif trend is None:
        log.info("processing.trend_skipped", sample_size=stats.sample_size)

    bundle = ResultBundle(
        config=config,
        generated_at=now,
        repo_metrics=frozen_map(repo_metrics),
        pull_request_metrics=frozen_map(pr_metrics),
        issue_close_times=tuple(close_times),
        close_time_stats=stats,
        close_time_trend=trend,
        contributor_summary=contributor_summary(all_contributors),
        commit_activity=commit_activity(all_commits),
        language_distribution=language_distribution(
            fetched.basic_info[name] for name in sorted(fetched.basic_info)
        ),
        overall_stats=overall_stats(repo_metrics, pr_metrics),
        fetch_outcomes=frozen_map(fetched.outcomes),
        resolution_errors=frozen_map(resolution_errors or {}),
    )
    log.info("processing.done", repos=len(repo_metrics), pr_repos=len(pr_metrics),
             close_time_records=len(close_times))
    return bundle


__all__ = ["process_data"]
