"""Shared fixtures: a recording logger and small record factories."""

import datetime as dt
from unittest.mock import MagicMock

import pytest

from gh_analytics.models import (
    BasicInfo,
    CommitRecord,
    ContributorRecord,
    FetchedData,
    FetchOutcome,
    IssueRecord,
    PullRequestRecord,
    frozen_map,
)
from gh_analytics.pipeline.config import AnalyticsConfig

NOW = dt.datetime(2024, 6, 30, 12, 0, tzinfo=dt.timezone.utc)


def utc(*args):
    return dt.datetime(*args, tzinfo=dt.timezone.utc)


def events(method):
    """Event names passed to a mocked log method, in call order."""
    return [c.args[0] for c in method.call_args_list]


def make_basic(name="octo/repo", *, language="Python", stars=10, forks=2,
               created=None, updated=None):
    owner, _, short = name.partition("/")
    return BasicInfo(
        name=name,
        owner_login=owner,
        short_name=short,
        description=None,
        stars=stars,
        forks=forks,
        primary_language=language,
        created_at=created or utc(2020, 1, 1),
        updated_at=updated or utc(2024, 6, 1),
        is_fork=False,
        is_archived=False,
    )


def make_issue(repo, number, state="closed", created=None, closed=None):
    return IssueRecord(repo, number, state, created, closed)


def make_commit(repo, sha, *, committer_date=None, author_date=None, login="dev"):
    return CommitRecord(repo, sha, login, committer_date, login, author_date, "msg")


def make_pr(repo, number, state="closed", created=None, merged=None):
    return PullRequestRecord(repo, number, state, created, merged, merged)


@pytest.fixture
def log():
    logger = MagicMock()
    logger.bind.return_value = logger
    return logger


@pytest.fixture
def config():
    return AnalyticsConfig(targets=("octo",), auth_token="token", repo_processing_delay_sec=0.0)


@pytest.fixture
def fetched():
    """Two analysable repos plus one that failed its basic info fetch."""
    full, partial = "octo/full", "octo/partial"
    return FetchedData(
        basic_info=frozen_map({
            full: make_basic(full, language="Python", stars=5, forks=1),
            partial: make_basic(partial, language=None, stars=3, forks=0),
        }),
        issues=frozen_map({
            full: (
                make_issue(full, 1, "closed", utc(2024, 1, 1), utc(2024, 1, 3)),
                make_issue(full, 2, "closed", utc(2024, 2, 1), utc(2024, 2, 2)),
                make_issue(full, 3, "open", utc(2024, 3, 1)),
            ),
        }),
        contributors=frozen_map({
            full: (ContributorRecord(full, "alice", 5), ContributorRecord(full, "bob", 1)),
            partial: (ContributorRecord(partial, "alice", 7),),
        }),
        commits=frozen_map({
            full: (
                make_commit(full, "a1", committer_date=utc(2024, 6, 25, 10)),
                make_commit(full, "a2", author_date=utc(2024, 6, 25, 18)),
                make_commit(full, "a3", committer_date=utc(2024, 5, 21)),
            ),
        }),
        pull_requests=frozen_map({
            full: (
                make_pr(full, 10, "open", utc(2024, 6, 1)),
                make_pr(full, 11, "closed", utc(2024, 5, 1), utc(2024, 5, 3)),
                make_pr(full, 12, "closed", utc(2024, 5, 1)),
            ),
        }),
        outcomes=frozen_map({
            full: FetchOutcome.success(),
            partial: FetchOutcome.partial(frozenset({"issues", "commits", "pull_requests"})),
            "octo/broken": FetchOutcome.critical("Basic info fetch failed"),
        }),
    )
