"""Tests for gh_analytics.retrieval.collectors covering payload mapping and degradation.

Run with coverage to exercise the data collection logic:
    pytest tests/test_collectors.py --maxfail=1 -v --cov=gh_analytics.retrieval.collectors --cov-report=term-missing
"""

import datetime as dt
from unittest.mock import patch

from gh_analytics.retrieval import collectors

from conftest import events, utc


def _repo_payload(**overrides):
    payload = {
        "name": "repo",
        "full_name": "octo/repo",
        "owner": {"login": "octo"},
        "description": "demo",
        "stargazers_count": 42,
        "forks_count": 7,
        "language": "Go",
        "created_at": "2020-05-01T10:00:00Z",
        "updated_at": "2024-06-01T08:30:00Z",
        "fork": False,
        "archived": True,
    }
    payload.update(overrides)
    return payload


def _commit(sha, committer_date=None, author_date=None, message="subject\n\nbody"):
    commit = {"message": message}
    if committer_date:
        commit["committer"] = {"date": committer_date}
    if author_date:
        commit["author"] = {"date": author_date}
    return {"sha": sha, "commit": commit, "author": {"login": "dev"}, "committer": None}


def test_parse_github_timestamp_variants():
    assert collectors.parse_github_timestamp("2024-01-02T03:04:05Z") == utc(2024, 1, 2, 3, 4, 5)
    assert collectors.parse_github_timestamp("2024-01-02T05:04:05+02:00") == utc(2024, 1, 2, 3, 4, 5)
    assert collectors.parse_github_timestamp("not a date") is None
    assert collectors.parse_github_timestamp(None) is None


def test_github_timestamp_and_one_line_helpers():
    assert collectors.github_timestamp(utc(2024, 1, 1)) == "2024-01-01T00:00:00Z"
    assert collectors.one_line("first\nsecond") == "first"
    assert collectors.one_line(None) == ""


@patch("gh_analytics.retrieval.collectors.get_json")
def test_get_repo_meta_maps_payload(mock_get, log):
    mock_get.return_value = _repo_payload()
    info = collectors.get_repo_meta(None, "octo/repo", log=log)
    assert info.name == "octo/repo"
    assert info.owner_login == "octo"
    assert info.short_name == "repo"
    assert (info.stars, info.forks) == (42, 7)
    assert info.primary_language == "Go"
    assert info.created_at == utc(2020, 5, 1, 10)
    assert info.is_archived is True and info.is_fork is False
    assert mock_get.call_args.args[1].endswith("/repos/octo/repo")


@patch("gh_analytics.retrieval.collectors.get_json")
def test_get_repo_meta_failure_and_bad_payloads(mock_get, log):
    mock_get.return_value = None
    assert collectors.get_repo_meta(None, "octo/repo", log=log) is None

    mock_get.return_value = ["unexpected"]
    assert collectors.get_repo_meta(None, "octo/repo", log=log) is None

    mock_get.return_value = _repo_payload(created_at=None)
    assert collectors.get_repo_meta(None, "octo/repo", log=log) is None
    assert events(log.error) == ["basic_info.malformed", "basic_info.missing_timestamps"]


@patch("gh_analytics.retrieval.collectors.get_json")
def test_get_repo_meta_null_language_and_counts(mock_get, log):
    mock_get.return_value = _repo_payload(language=None, stargazers_count=None)
    info = collectors.get_repo_meta(None, "octo/repo", log=log)
    assert info.primary_language is None
    assert info.stars == 0


@patch("gh_analytics.retrieval.collectors.paged_get")
def test_get_issues_excludes_pull_requests(mock_paged, log):
    mock_paged.return_value = [
        {"number": 1, "state": "closed", "created_at": "2024-01-01T00:00:00Z",
         "closed_at": "2024-01-03T00:00:00Z"},
        {"number": 2, "state": "open", "created_at": "2024-02-01T00:00:00Z", "closed_at": None},
        {"number": 3, "state": "closed", "pull_request": {"url": "x"}},
    ]
    issues = collectors.get_issues(None, "octo/repo", log=log)
    assert [i.number for i in issues] == [1, 2]
    assert issues[0].closed_at == utc(2024, 1, 3)
    assert issues[1].closed_at is None
    assert mock_paged.call_args.kwargs["params"] == {"state": "all"}


@patch("gh_analytics.retrieval.collectors.paged_get", return_value=None)
def test_get_issues_failure(mock_paged, log):
    assert collectors.get_issues(None, "octo/repo", log=log) is None


@patch("gh_analytics.retrieval.collectors.paged_get")
def test_get_contributors_skips_malformed_entries(mock_paged, log):
    mock_paged.return_value = [
        {"login": "alice", "contributions": 5},
        {"login": None, "contributions": 3},
        {"login": "bob"},
        {"login": "carol", "contributions": "2"},
    ]
    contributors = collectors.get_contributors(None, "octo/repo", log=log)
    assert [(c.login, c.contributions) for c in contributors] == [("alice", 5), ("carol", 2)]
    assert events(log.warning) == ["contributors.entry_skipped", "contributors.entry_skipped"]


@patch("gh_analytics.retrieval.collectors.paged_get")
def test_get_commits_uses_committer_then_author_date(mock_paged, log):
    since = utc(2024, 1, 1)
    mock_paged.return_value = [
        _commit("c1", committer_date="2024-03-01T00:00:00Z", author_date="2023-12-01T00:00:00Z"),
        _commit("c2", author_date="2024-02-01T00:00:00Z"),
        _commit("c3", committer_date="2023-12-31T23:59:59Z"),
        _commit("c4"),
        {"commit": {}},
    ]
    commits = collectors.get_commits(None, "octo/repo", since=since, log=log)
    assert [c.sha for c in commits] == ["c1", "c2"]
    assert commits[0].primary_date == utc(2024, 3, 1)
    assert commits[1].committer_date is None
    assert commits[1].primary_date == utc(2024, 2, 1)
    assert commits[0].message_summary == "subject"
    assert commits[0].author_login == "dev" and commits[0].committer_login is None
    assert mock_paged.call_args.kwargs["params"] == {"since": "2024-01-01T00:00:00Z"}
    assert events(log.warning) == [
        "commits.older_than_since",
        "commits.missing_dates",
        "commits.entry_skipped",
    ]


@patch("gh_analytics.retrieval.collectors.paged_get")
def test_get_pull_requests_combines_open_and_closed(mock_paged, log):
    mock_paged.side_effect = [
        [{"number": 1, "state": "open", "created_at": "2024-01-01T00:00:00Z"}],
        [{"number": 2, "state": "closed", "created_at": "2024-01-01T00:00:00Z",
          "closed_at": "2024-01-02T00:00:00Z", "merged_at": "2024-01-02T00:00:00Z"}],
    ]
    prs = collectors.get_pull_requests(None, "octo/repo", log=log)
    assert [(p.number, p.state) for p in prs] == [(1, "open"), (2, "closed")]
    assert prs[1].merged_at == utc(2024, 1, 2)
    states = [c.kwargs["params"]["state"] for c in mock_paged.call_args_list]
    assert states == ["open", "closed"]


@patch("gh_analytics.retrieval.collectors.paged_get")
def test_get_pull_requests_degrades_to_successful_half(mock_paged, log):
    mock_paged.side_effect = [None, [{"number": 2, "state": "closed"}]]
    prs = collectors.get_pull_requests(None, "octo/repo", log=log)
    assert [p.number for p in prs] == [2]
    assert "pull_requests.open_failed" in events(log.warning)


@patch("gh_analytics.retrieval.collectors.paged_get")
def test_get_pull_requests_unavailable_when_nothing_usable(mock_paged, log):
    mock_paged.side_effect = [None, None]
    assert collectors.get_pull_requests(None, "octo/repo", log=log) is None

    mock_paged.side_effect = [None, []]
    assert collectors.get_pull_requests(None, "octo/repo", log=log) is None


@patch("gh_analytics.retrieval.collectors.paged_get")
def test_get_pull_requests_both_halves_empty(mock_paged, log):
    mock_paged.side_effect = [[], []]
    assert collectors.get_pull_requests(None, "octo/repo", log=log) == []


def test_commit_record_primary_date_prefers_committer():
    from gh_analytics.models import CommitRecord

    record = CommitRecord("o/r", "s", None, utc(2024, 1, 2), None, utc(2024, 1, 1), "")
    assert record.primary_date == utc(2024, 1, 2)
    assert isinstance(record.primary_date, dt.datetime)
