"""Entry points for running the GitHub analytics pipeline end to end."""

from __future__ import annotations

import calendar
import datetime as dt
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import requests
import structlog

from ..log_config import setup_logging
from ..models import (
    RESOURCE_COMMITS,
    RESOURCE_CONTRIBUTORS,
    RESOURCE_ISSUES,
    RESOURCE_PULL_REQUESTS,
    BasicInfo,
    CommitRecord,
    ContributorRecord,
    FetchedData,
    FetchOutcome,
    IssueRecord,
    OutcomeStatus,
    PullRequestRecord,
    RepoId,
    ResultBundle,
    frozen_map,
)
from ..processing import process_data
from ..reporting import write_reports
from ..retrieval.collectors import (
    get_commits,
    get_contributors,
    get_issues,
    get_pull_requests,
    get_repo_meta,
)
from ..retrieval.errors import AuthenticationError
from ..retrieval.http_client import build_session, check_authentication
from .config import AnalyticsConfig, parse_args, resolve_settings
from .targets import identify_target_repositories

SUB_FETCH_DELAY_FACTOR = 0.2


@dataclass
class RepoData:
    """Records gathered for one repository before they are committed to the run."""

    basic_info: BasicInfo
    issues: Optional[Tuple[IssueRecord, ...]] = None
    contributors: Optional[Tuple[ContributorRecord, ...]] = None
    commits: Optional[Tuple[CommitRecord, ...]] = None
    pull_requests: Optional[Tuple[PullRequestRecord, ...]] = None
    missing: Set[str] = field(default_factory=set)


def commit_window_start(now: dt.datetime, months: int) -> dt.datetime:
    """Midnight UTC on the same calendar day ``months`` months before ``now``."""
    now = now.astimezone(dt.timezone.utc)
    index = now.year * 12 + (now.month - 1) - max(0, months)
    year, month0 = divmod(index, 12)
    month = month0 + 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return dt.datetime(year, month, day, tzinfo=dt.timezone.utc)


def _pause(config: AnalyticsConfig) -> None:
    time.sleep(config.repo_processing_delay_sec * SUB_FETCH_DELAY_FACTOR)


def fetch_repo(session: requests.Session,
               repo_id: RepoId,
               config: AnalyticsConfig,
               *,
               since: dt.datetime,
               log: Any) -> Tuple[Optional[RepoData], FetchOutcome]:
    """Fetch every enabled resource for one repo; basic info failure skips the rest.

    Once basic info is in hand the repo is always returned: an unexpected error
    in a later step stops the sequence, keeps what was gathered so far, and is
    recorded as a critical outcome.
    """
    basic_info = get_repo_meta(session, repo_id, log=log)
    if basic_info is None:
        log.error("repo.basic_info_failed", action="skipping remaining fetches")
        return None, FetchOutcome.critical("Basic info fetch failed")

    data = RepoData(basic_info=basic_info)
    steps = [(RESOURCE_ISSUES, lambda: get_issues(session, repo_id, log=log))]
    if config.fetch_contributors:
        steps.append((RESOURCE_CONTRIBUTORS, lambda: get_contributors(session, repo_id, log=log)))
    if config.fetch_commit_history:
        steps.append((RESOURCE_COMMITS, lambda: get_commits(session, repo_id, since=since, log=log)))
    if config.fetch_pull_requests:
        steps.append((RESOURCE_PULL_REQUESTS, lambda: get_pull_requests(session, repo_id, log=log)))

    for resource, fetch in steps:
        try:
            records = fetch()
        except Exception as exc:
            log.exception("repo.unexpected_error", resource=resource)
            return data, FetchOutcome.critical(f"Unexpected error: {exc}")
        if records is None:
            log.warning("repo.resource_unavailable", resource=resource)
            data.missing.add(resource)
        else:
            setattr(data, resource, tuple(records))
            log.debug("repo.resource_fetched", resource=resource, count=len(records))
        _pause(config)

    if data.missing:
        return data, FetchOutcome.partial(frozenset(data.missing))
    return data, FetchOutcome.success()


def fetch_all_repo_data(session: requests.Session,
                        repo_ids: Sequence[RepoId],
                        config: AnalyticsConfig,
                        *,
                        log: Any,
                        now: Optional[dt.datetime] = None) -> FetchedData:
    """Fetch repositories one at a time; a failure in one never stops the others.

    Every repo whose basic info was fetched is kept, whatever happened after.
    """
    now = now or dt.datetime.now(dt.timezone.utc)
    since = commit_window_start(now, config.commit_history_months)

    basic_info: Dict[RepoId, BasicInfo] = {}
    issues: Dict[RepoId, Tuple[IssueRecord, ...]] = {}
    contributors: Dict[RepoId, Tuple[ContributorRecord, ...]] = {}
    commits: Dict[RepoId, Tuple[CommitRecord, ...]] = {}
    pull_requests: Dict[RepoId, Tuple[PullRequestRecord, ...]] = {}
    outcomes: Dict[RepoId, FetchOutcome] = {}

    total = len(repo_ids)
    log.info("fetch.start", repos=total, commits_since=since.date().isoformat())
    fetch_started = time.monotonic()

    for index, repo_id in enumerate(repo_ids, start=1):
        repo_log = log.bind(repo=repo_id)
        repo_log.info("repo.fetch_start", index=index, total=total)
        repo_started = time.monotonic()
        try:
            data, outcome = fetch_repo(session, repo_id, config, since=since, log=repo_log)
        except Exception as exc:
            repo_log.exception("repo.unexpected_error")
            data, outcome = None, FetchOutcome.critical(f"Unexpected error: {exc}")
        finally:
            repo_log.debug("repo.fetch_done",
                           seconds=round(time.monotonic() - repo_started, 1))
            time.sleep(config.repo_processing_delay_sec)

        outcomes[repo_id] = outcome
        if data is None:
            continue
        basic_info[repo_id] = data.basic_info
        for resource, target in ((RESOURCE_ISSUES, issues),
                                 (RESOURCE_CONTRIBUTORS, contributors),
                                 (RESOURCE_COMMITS, commits),
                                 (RESOURCE_PULL_REQUESTS, pull_requests)):
            records = getattr(data, resource)
            if records is not None:
                target[repo_id] = records

    succeeded = sum(1 for o in outcomes.values() if o.status is OutcomeStatus.SUCCESS)
    partial = sum(1 for o in outcomes.values() if o.status is OutcomeStatus.PARTIAL_FAILURE)
    log.info("fetch.done", successful=succeeded, partial=partial,
             failed=total - succeeded - partial, total=total,
             minutes=round((time.monotonic() - fetch_started) / 60, 1))

    return FetchedData(
        basic_info=frozen_map(basic_info),
        issues=frozen_map(issues),
        contributors=frozen_map(contributors),
        commits=frozen_map(commits),
        pull_requests=frozen_map(pull_requests),
        outcomes=frozen_map(outcomes),
    )


def run_analysis(config: AnalyticsConfig,
                 *,
                 session: Optional[requests.Session] = None,
                 log: Any = None,
                 now: Optional[dt.datetime] = None) -> Optional[ResultBundle]:
    """Resolve targets, fetch, and process; None when the run cannot produce a result."""
    log = log or structlog.get_logger("gh_analytics")
    log.info("run.start", targets=list(config.targets), output_dir=config.output_dir)

    if not config.targets:
        log.error("run.no_targets")
        return None
    if not config.auth_token:
        log.error("run.no_token", hint="set GITHUB_TOKEN or pass --token")
        return None

    session = session or build_session(config.auth_token)
    try:
        login = check_authentication(session, log=log)
    except AuthenticationError as exc:
        log.error("run.authentication_failed", error=str(exc))
        return None
    log.info("run.authenticated", login=login)

    repo_ids, resolution_errors = identify_target_repositories(
        session, config.targets, delay_sec=config.repo_processing_delay_sec, log=log,
    )
    if not repo_ids:
        log.error("run.no_repositories", resolution_errors=resolution_errors)
        return None

    fetched = fetch_all_repo_data(session, repo_ids, config, log=log, now=now)
    if not fetched.basic_info:
        log.error("run.no_repository_data")
        return None

    return process_data(fetched, config, log=log, now=now,
                        resolution_errors=resolution_errors)


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point: parse arguments, run the analysis, write reports."""
    config = resolve_settings(parse_args(argv))
    setup_logging(config.effective_log_level, config.log_format)
    log = structlog.get_logger("gh_analytics")

    if not config.targets:
        log.error("run.no_targets", hint="pass organization names or owner/repo arguments")
        sys.exit(1)

    bundle = run_analysis(config, log=log)
    if bundle is None:
        log.error("run.failed", output_dir=config.output_dir)
        sys.exit(1)

    written = write_reports(bundle, config.output_dir, log=log)
    log.info("run.complete", repos=len(bundle.repo_metrics), files=len(written),
             output_dir=config.output_dir)


if __name__ == "__main__":
    main()
