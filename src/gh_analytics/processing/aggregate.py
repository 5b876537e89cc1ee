"""Cross-repository rollups: contributors, commit activity, languages, close times, totals."""

from __future__ import annotations

import datetime as dt
import math
from collections import Counter, defaultdict
from statistics import mean, median
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..models import (
    UNKNOWN_LANGUAGE,
    BasicInfo,
    CloseTimeStats,
    CommitActivityRow,
    CommitRecord,
    ContributorRecord,
    ContributorSummaryRow,
    IssueCloseTimeRecord,
    LanguageDistributionRow,
    OverallStats,
    PullRequestMetrics,
    QuarterlyCloseTimeRow,
    RepoId,
    RepoMetrics,
)
from .metrics import resolution_rate

MIN_TREND_SAMPLE = 20


def contributor_summary(contributors: Iterable[ContributorRecord]) -> Tuple[ContributorSummaryRow, ...]:
    """Sum commit counts per login across repos, largest first."""
    totals: Counter = Counter()
    for record in contributors:
        totals[record.login] += record.contributions
    ordered = sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    return tuple(ContributorSummaryRow(login, total) for login, total in ordered)


def commit_activity(commits: Iterable[CommitRecord]) -> Tuple[CommitActivityRow, ...]:
    """Count commits per UTC calendar day of their primary date, oldest first."""
    per_day: Counter = Counter()
    for commit in commits:
        primary = commit.primary_date
        if primary is None:
            continue
        per_day[primary.astimezone(dt.timezone.utc).date()] += 1
    return tuple(CommitActivityRow(day, count) for day, count in sorted(per_day.items()))


def language_distribution(basic_infos: Iterable[BasicInfo]) -> Tuple[LanguageDistributionRow, ...]:
    """Count repositories per primary language, most common first."""
    counts: Counter = Counter(info.primary_language or UNKNOWN_LANGUAGE for info in basic_infos)
    ordered = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return tuple(LanguageDistributionRow(language, count) for language, count in ordered)


def percentile(sorted_values: Sequence[float], q: float) -> float:
    """Linear interpolation between closest ranks at position (n - 1) * q.

    Matches numpy's default method and R's type 7. ``sorted_values`` must be
    non-empty and ascending.
    """
    if not sorted_values:
        raise ValueError("percentile of an empty sequence")
    position = (len(sorted_values) - 1) * q
    lower = math.floor(position)
    upper = math.ceil(position)
    if lower == upper:
        return float(sorted_values[lower])
    fraction = position - lower
    return sorted_values[lower] + (sorted_values[upper] - sorted_values[lower]) * fraction


def close_time_stats(records: Sequence[IssueCloseTimeRecord]) -> Optional[CloseTimeStats]:
    if not records:
        return None
    values = sorted(r.close_time_days for r in records)
    return CloseTimeStats(
        sample_size=len(values),
        mean=mean(values),
        median=median(values),
        minimum=values[0],
        maximum=values[-1],
        p25=percentile(values, 0.25),
        p75=percentile(values, 0.75),
        p90=percentile(values, 0.90),
    )


def quarter_label(moment: dt.datetime) -> str:
    moment = moment.astimezone(dt.timezone.utc)
    return f"{moment.year}-Q{(moment.month - 1) // 3 + 1}"


def close_time_trend(records: Sequence[IssueCloseTimeRecord],
                     min_sample: int = MIN_TREND_SAMPLE) -> Optional[Tuple[QuarterlyCloseTimeRow, ...]]:
    """Per-quarter close time mean/median/count; None below ``min_sample`` records."""
    if len(records) < min_sample:
        return None
    by_quarter: Dict[str, List[float]] = defaultdict(list)
    for record in records:
        by_quarter[quarter_label(record.closed_at)].append(record.close_time_days)
    return tuple(
        QuarterlyCloseTimeRow(quarter, len(values), mean(values), median(values))
        for quarter, values in sorted(by_quarter.items())
    )


def overall_stats(repo_metrics: Mapping[RepoId, RepoMetrics],
                  pr_metrics: Mapping[RepoId, PullRequestMetrics]) -> OverallStats:
    repos = list(repo_metrics.values())
    prs = list(pr_metrics.values())
    open_issues = sum(m.open_issues for m in repos)
    closed_issues = sum(m.closed_issues for m in repos)
    total_issues = open_issues + closed_issues
    open_prs = sum(p.open_pr_count for p in prs)
    closed_prs = sum(p.closed_pr_count for p in prs)
    merged_prs = sum(p.merged_pr_count for p in prs)
    return OverallStats(
        total_repos=len(repos),
        total_stars=sum(m.stars for m in repos),
        total_forks=sum(m.forks for m in repos),
        total_commits_fetched_period=sum(m.total_commits_fetched_period for m in repos),
        total_open_issues=open_issues,
        total_closed_issues=closed_issues,
        total_issues=total_issues,
        issue_resolution_rate=resolution_rate(closed_issues, total_issues),
        total_open_prs=open_prs,
        total_closed_prs=closed_prs,
        total_merged_prs=merged_prs,
        total_prs=open_prs + closed_prs + merged_prs,
    )


__all__ = [
    "MIN_TREND_SAMPLE",
    "contributor_summary",
    "commit_activity",
    "language_distribution",
    "percentile",
    "close_time_stats",
    "quarter_label",
    "close_time_trend",
    "overall_stats",
]
