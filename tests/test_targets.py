"""Tests for gh_analytics.pipeline.targets covering org expansion and explicit repos.

Run with:
    pytest tests/test_targets.py --maxfail=1 -v --cov=gh_analytics.pipeline.targets --cov-report=term-missing
"""

from unittest.mock import patch

import pytest

from gh_analytics.pipeline import targets

from conftest import events


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    slept = []
    monkeypatch.setattr(targets.time, "sleep", slept.append)
    return slept


@patch("gh_analytics.pipeline.targets.paged_get")
def test_list_org_repositories_reads_full_names(mock_paged, log):
    mock_paged.return_value = [{"full_name": "octo/a"}, {"name": "nameless"}, {"full_name": "octo/b"}]
    assert targets.list_org_repositories(None, "octo", log=log) == ["octo/a", "octo/b"]
    assert mock_paged.call_args.args[1].endswith("/orgs/octo/repos")
    assert mock_paged.call_args.kwargs["params"] == {"type": "public"}
    assert events(log.warning) == ["targets.entry_skipped"]


@patch("gh_analytics.pipeline.targets.paged_get", return_value=None)
def test_list_org_repositories_failure(mock_paged, log):
    assert targets.list_org_repositories(None, "octo", log=log) is None


@patch("gh_analytics.pipeline.targets.list_org_repositories")
def test_explicit_repos_pass_through_without_lookup(mock_list, log):
    repos, errors = targets.identify_target_repositories(
        None, ["octo/a", " octo/b ", "octo/a"], delay_sec=0.0, log=log,
    )
    assert repos == ["octo/a", "octo/b"]
    assert errors == {}
    mock_list.assert_not_called()


@patch("gh_analytics.pipeline.targets.list_org_repositories")
def test_orgs_expand_and_deduplicate(mock_list, log, no_sleep):
    mock_list.side_effect = lambda session, org, log: {"octo": ["octo/a", "octo/b"],
                                                       "other": ["other/c"]}[org]
    repos, errors = targets.identify_target_repositories(
        None, ["octo", "octo/b", "other", "octo"], delay_sec=1.0, log=log,
    )
    assert repos == ["octo/a", "octo/b", "other/c"]
    assert errors == {}
    assert mock_list.call_count == 2
    assert no_sleep == [0.5, 0.5]


@patch("gh_analytics.pipeline.targets.list_org_repositories", return_value=[])
def test_empty_org_warns_and_contributes_nothing(mock_list, log):
    repos, errors = targets.identify_target_repositories(None, ["ghost-org"], delay_sec=0.0, log=log)
    assert repos == []
    assert errors == {}
    assert events(log.warning) == ["targets.org_empty"]


@patch("gh_analytics.pipeline.targets.list_org_repositories")
def test_failed_org_is_recorded_and_others_continue(mock_list, log):
    mock_list.side_effect = [None, ["good/x"]]
    repos, errors = targets.identify_target_repositories(None, ["bad", "good"], delay_sec=0.0, log=log)
    assert repos == ["good/x"]
    assert errors == {"bad": "Failed to fetch repository list"}
    assert "targets.org_failed" in events(log.error)
