"""Immutable records passed between the fetch, processing, and reporting stages."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, FrozenSet, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from .pipeline.config import AnalyticsConfig

RepoId = str

UNKNOWN_LANGUAGE = "Unknown"

RESOURCE_ISSUES = "issues"
RESOURCE_CONTRIBUTORS = "contributors"
RESOURCE_COMMITS = "commits"
RESOURCE_PULL_REQUESTS = "pull_requests"


@dataclass(frozen=True)
class BasicInfo:
    """Repository metadata; its absence excludes a repo from processing."""

    name: RepoId
    owner_login: str
    short_name: str
    description: Optional[str]
    stars: int
    forks: int
    primary_language: Optional[str]
    created_at: dt.datetime
    updated_at: dt.datetime
    is_fork: bool
    is_archived: bool


@dataclass(frozen=True)
class IssueRecord:
    repo_name: RepoId
    number: int
    state: str
    created_at: Optional[dt.datetime]
    closed_at: Optional[dt.datetime]


@dataclass(frozen=True)
class PullRequestRecord:
    repo_name: RepoId
    number: int
    state: str
    created_at: Optional[dt.datetime]
    closed_at: Optional[dt.datetime]
    merged_at: Optional[dt.datetime]


@dataclass(frozen=True)
class CommitRecord:
    """One commit; author and committer identity may both be absent."""

    repo_name: RepoId
    sha: str
    committer_login: Optional[str]
    committer_date: Optional[dt.datetime]
    author_login: Optional[str]
    author_date: Optional[dt.datetime]
    message_summary: str

    @property
    def primary_date(self) -> Optional[dt.datetime]:
        """Committer date, falling back to the author date."""
        if self.committer_date is not None:
            return self.committer_date
        return self.author_date


@dataclass(frozen=True)
class ContributorRecord:
    repo_name: RepoId
    login: str
    contributions: int


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    CRITICAL_FAILURE = "critical_failure"
    PARTIAL_FAILURE = "partial_failure"


@dataclass(frozen=True)
class FetchOutcome:
    """Per-repository result of the fetch sequence."""

    status: OutcomeStatus
    reason: Optional[str] = None
    missing: FrozenSet[str] = frozenset()

    @classmethod
    def success(cls) -> "FetchOutcome":
        return cls(OutcomeStatus.SUCCESS)

    @classmethod
    def critical(cls, reason: str) -> "FetchOutcome":
        return cls(OutcomeStatus.CRITICAL_FAILURE, reason=reason)

    @classmethod
    def partial(cls, missing: FrozenSet[str]) -> "FetchOutcome":
        return cls(OutcomeStatus.PARTIAL_FAILURE, missing=frozenset(missing))

    @property
    def is_critical(self) -> bool:
        return self.status is OutcomeStatus.CRITICAL_FAILURE

    def describe(self) -> str:
        if self.status is OutcomeStatus.CRITICAL_FAILURE:
            return f"critical: {self.reason}"
        if self.status is OutcomeStatus.PARTIAL_FAILURE:
            return "partial: missing " + ", ".join(sorted(self.missing))
        return "success"


@dataclass(frozen=True)
class RepoMetrics:
    name: RepoId
    stars: int
    forks: int
    created_at: dt.datetime
    primary_language: Optional[str]
    open_issues: int
    closed_issues: int
    total_issues: int
    issue_resolution_rate: Optional[float]
    total_commits_fetched_period: int
    monthly_commits_last30d: int
    last_api_update: dt.datetime
    age_days: int


@dataclass(frozen=True)
class PullRequestMetrics:
    repo_name: RepoId
    open_pr_count: int
    closed_pr_count: int
    merged_pr_count: int
    total_pr_count: int
    avg_merge_time_days: Optional[float]


@dataclass(frozen=True)
class IssueCloseTimeRecord:
    repo_name: RepoId
    issue_number: int
    close_time_days: float
    closed_at: dt.datetime


@dataclass(frozen=True)
class ContributorSummaryRow:
    contributor_login: str
    total_commits: int


@dataclass(frozen=True)
class CommitActivityRow:
    date: dt.date
    commit_count: int


@dataclass(frozen=True)
class LanguageDistributionRow:
    language: str
    count: int


@dataclass(frozen=True)
class CloseTimeStats:
    """Distribution of issue close times, in days."""

    sample_size: int
    mean: float
    median: float
    minimum: float
    maximum: float
    p25: float
    p75: float
    p90: float


@dataclass(frozen=True)
class QuarterlyCloseTimeRow:
    quarter: str
    count: int
    mean: float
    median: float


@dataclass(frozen=True)
class OverallStats:
    total_repos: int
    total_stars: int
    total_forks: int
    total_commits_fetched_period: int
    total_open_issues: int
    total_closed_issues: int
    total_issues: int
    issue_resolution_rate: Optional[float]
    total_open_prs: int
    total_closed_prs: int
    total_merged_prs: int
    total_prs: int


@dataclass(frozen=True)
class FetchedData:
    """Raw records per repository, as gathered by the fetch orchestrator."""

    basic_info: Mapping[RepoId, BasicInfo]
    issues: Mapping[RepoId, Tuple[IssueRecord, ...]]
    contributors: Mapping[RepoId, Tuple[ContributorRecord, ...]]
    commits: Mapping[RepoId, Tuple[CommitRecord, ...]]
    pull_requests: Mapping[RepoId, Tuple[PullRequestRecord, ...]]
    outcomes: Mapping[RepoId, FetchOutcome]


@dataclass(frozen=True)
class ResultBundle:
    """Final output of a run, handed to report writers."""

    config: "AnalyticsConfig"
    generated_at: dt.datetime
    repo_metrics: Mapping[RepoId, RepoMetrics]
    pull_request_metrics: Mapping[RepoId, PullRequestMetrics]
    issue_close_times: Tuple[IssueCloseTimeRecord, ...]
    close_time_stats: Optional[CloseTimeStats]
    close_time_trend: Optional[Tuple[QuarterlyCloseTimeRow, ...]]
    contributor_summary: Tuple[ContributorSummaryRow, ...]
    commit_activity: Tuple[CommitActivityRow, ...]
    language_distribution: Tuple[LanguageDistributionRow, ...]
    overall_stats: OverallStats
    fetch_outcomes: Mapping[RepoId, FetchOutcome]
    resolution_errors: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


def frozen_map(data: Mapping) -> Mapping:
    """Return a read-only view over a copy of ``data``."""
    return MappingProxyType(dict(data))


__all__ = [
    "RepoId",
    "UNKNOWN_LANGUAGE",
    "RESOURCE_ISSUES",
    "RESOURCE_CONTRIBUTORS",
    "RESOURCE_COMMITS",
    "RESOURCE_PULL_REQUESTS",
    "BasicInfo",
    "IssueRecord",
    "PullRequestRecord",
    "CommitRecord",
    "ContributorRecord",
    "OutcomeStatus",
    "FetchOutcome",
    "RepoMetrics",
    "PullRequestMetrics",
    "IssueCloseTimeRecord",
    "ContributorSummaryRow",
    "CommitActivityRow",
    "LanguageDistributionRow",
    "CloseTimeStats",
    "QuarterlyCloseTimeRow",
    "OverallStats",
    "FetchedData",
    "ResultBundle",
    "frozen_map",
]
