"""Write a ResultBundle to disk as CSV tables plus JSON and Markdown summaries."""

from __future__ import annotations

import csv
import datetime as dt
import json
import os
from dataclasses import asdict
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .models import UNKNOWN_LANGUAGE, ResultBundle

REPO_METRICS_STEM = "repository_metrics"
CONTRIBUTOR_STEM = "contributor_summary"
COMMIT_ACTIVITY_STEM = "overall_commit_activity"
LANGUAGE_STEM = "language_distribution"
CLOSE_TIMES_STEM = "issue_close_times"
SUMMARY_STEM = "summary"

TOP_N = 5

REPO_METRICS_COLUMNS = [
    "name",
    "stars",
    "forks",
    "language",
    "created_at",
    "age_days",
    "last_api_update",
    "open_issues",
    "closed_issues",
    "total_issues",
    "issue_resolution_rate",
    "monthly_commits_last30d",
    "total_commits_fetched_period",
    "open_pr",
    "closed_pr",
    "merged_pr",
    "total_pr",
    "avg_merge_time_days",
    "fetch_outcome",
]


def ensure_dir(path: str) -> None:
    """Create output directories as-needed without raising for existing folders."""
    os.makedirs(path, exist_ok=True)


def _json_default(value: Any) -> Any:
    if isinstance(value, (dt.datetime, dt.date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return str(value)


def save_json(path: str, data: Any) -> None:
    """Write JSON to disk using UTF-8 and deterministic formatting."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=_json_default)


def save_csv(path: str, columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> None:
    """Write a header plus rows; None becomes an empty cell."""
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(columns)
        for row in rows:
            writer.writerow(["" if cell is None else cell for cell in row])


def repo_metrics_rows(bundle: ResultBundle) -> List[List[Any]]:
    """One row per analysed repo, joined with its PR metrics when present."""
    rows: List[List[Any]] = []
    for name in sorted(bundle.repo_metrics):
        rm = bundle.repo_metrics[name]
        pr = bundle.pull_request_metrics.get(name)
        outcome = bundle.fetch_outcomes.get(name)
        rows.append([
            rm.name,
            rm.stars,
            rm.forks,
            rm.primary_language,
            rm.created_at.strftime("%Y-%m-%d"),
            rm.age_days,
            rm.last_api_update.strftime("%Y-%m-%d %H:%M"),
            rm.open_issues,
            rm.closed_issues,
            rm.total_issues,
            rm.issue_resolution_rate,
            rm.monthly_commits_last30d,
            rm.total_commits_fetched_period,
            pr.open_pr_count if pr else None,
            pr.closed_pr_count if pr else None,
            pr.merged_pr_count if pr else None,
            pr.total_pr_count if pr else None,
            pr.avg_merge_time_days if pr else None,
            outcome.describe() if outcome else None,
        ])
    return rows


def summary_document(bundle: ResultBundle) -> Dict[str, Any]:
    """JSON-friendly view of the scalar parts of a bundle."""
    return {
        "generated_at": bundle.generated_at,
        "targets": list(bundle.config.targets),
        "commit_history_months": bundle.config.commit_history_months,
        "overall_stats": asdict(bundle.overall_stats),
        "issue_close_time_stats": asdict(bundle.close_time_stats) if bundle.close_time_stats else None,
        "issue_close_time_trend": (
            [asdict(row) for row in bundle.close_time_trend] if bundle.close_time_trend else None
        ),
        "fetch_outcomes": {
            name: {"status": o.status.value, "reason": o.reason, "missing": sorted(o.missing)}
            for name, o in sorted(bundle.fetch_outcomes.items())
        },
        "resolution_errors": dict(bundle.resolution_errors),
    }


def report_filename(stem: str, stamp: str, ext: str) -> str:
    return f"{stem}_{stamp}.{ext}"


def _top(items: Iterable[Any], key: Any, limit: int = TOP_N) -> List[Any]:
    return sorted(items, key=key)[:limit]


def _ranked(lines: List[str], empty: str) -> List[str]:
    if not lines:
        return [empty]
    return [f"{i}. {line}" for i, line in enumerate(lines, start=1)]


def render_markdown_summary(bundle: ResultBundle, stamp: str) -> str:
    """Human-readable run summary: totals, top-5 rankings, links to data files."""
    metrics = list(bundle.repo_metrics.values())
    stats = bundle.overall_stats
    out: List[str] = [
        f"# GitHub Analytics Summary: `{', '.join(bundle.config.targets)}`",
        f"_Generated on: {bundle.generated_at.strftime('%Y-%m-%d %H:%M:%S')} UTC_",
        "",
        "## Overall Summary",
        f"- **Repositories Analyzed:** {stats.total_repos}",
    ]
    if metrics:
        rate = "N/A" if stats.issue_resolution_rate is None else f"{stats.issue_resolution_rate}%"
        languages = [row.language for row in bundle.language_distribution
                     if row.language != UNKNOWN_LANGUAGE]
        out += [
            f"- **Total Stars:** {stats.total_stars}",
            f"- **Total Forks:** {stats.total_forks}",
            f"- **Total Issues:** {stats.total_issues} "
            f"(Open: {stats.total_open_issues}, Closed: {stats.total_closed_issues})",
            f"- **Overall Issue Resolution Rate:** {rate}",
            f"- **Total PRs:** {stats.total_prs} (Open: {stats.total_open_prs}, "
            f"Merged: {stats.total_merged_prs}, Closed (Not Merged): {stats.total_closed_prs})",
            f"- **Primary Languages:** {', '.join(languages) or 'N/A'}",
        ]
    else:
        out.append("_No repository data available for summary._")

    out += ["", f"## Top {TOP_N} Repositories by Stars"]
    out += _ranked(
        [f"**{m.name}:** {m.stars} stars" for m in _top(metrics, lambda m: (-m.stars, m.name))],
        "_No repository data available._",
    )

    out += ["", f"## Top {TOP_N} Repositories by Monthly Commits (Last 30 Days)"]
    active = [m for m in metrics if m.monthly_commits_last30d > 0]
    out += _ranked(
        [f"**{m.name}:** {m.monthly_commits_last30d} commits"
         for m in _top(active, lambda m: (-m.monthly_commits_last30d, m.name))],
        "_No recent commit activity detected in analyzed repositories._",
    )

    out += ["", f"## Top {TOP_N} Repositories by Issue Resolution Rate"]
    resolved = [m for m in metrics if m.total_issues > 0 and m.issue_resolution_rate is not None]
    out += _ranked(
        [f"**{m.name}:** {m.issue_resolution_rate}% ({m.closed_issues}/{m.total_issues})"
         for m in _top(resolved, lambda m: (-m.issue_resolution_rate, m.name))],
        "_No repositories with valid issue resolution rates found._",
    )

    out += ["", f"## Top {TOP_N} Contributors by Total Commits"]
    out += _ranked(
        [f"**{r.contributor_login}:** {r.total_commits} commits"
         for r in bundle.contributor_summary[:TOP_N]],
        "_No contributor data processed or available._",
    )

    out += ["", "## Data Files"]
    links: List[str] = []
    if bundle.config.generate_csv:
        if bundle.repo_metrics:
            links.append(f"- [Repository Metrics CSV]({report_filename(REPO_METRICS_STEM, stamp, 'csv')})")
        if bundle.contributor_summary:
            links.append(f"- [Contributor Summary CSV]({report_filename(CONTRIBUTOR_STEM, stamp, 'csv')})")
        if bundle.commit_activity:
            links.append(f"- [Overall Commit Activity CSV]({report_filename(COMMIT_ACTIVITY_STEM, stamp, 'csv')})")
    if bundle.config.generate_json:
        links.append(f"- [Summary JSON]({report_filename(SUMMARY_STEM, stamp, 'json')})")
    out += links or ["_Data file generation was disabled._"]
    return "\n".join(out) + "\n"


def write_markdown_summary(bundle: ResultBundle,
                           output_dir: str,
                           *,
                           log: Any,
                           timestamp: Optional[str] = None) -> str:
    """Write ``summary_<ts>.md`` and return its path."""
    ensure_dir(output_dir)
    stamp = timestamp or _stamp(bundle)
    path = os.path.join(output_dir, report_filename(SUMMARY_STEM, stamp, "md"))
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_markdown_summary(bundle, stamp))
    log.info("reports.markdown_written", path=path)
    return path


def _stamp(bundle: ResultBundle) -> str:
    return bundle.generated_at.strftime("%Y-%m-%d_%H%M%S")


def write_reports(bundle: ResultBundle,
                  output_dir: str,
                  *,
                  log: Any,
                  timestamp: Optional[str] = None) -> List[str]:
    """Write the enabled CSV/JSON/Markdown outputs and return the paths written."""
    ensure_dir(output_dir)
    stamp = timestamp or _stamp(bundle)
    written: List[str] = []

    def _path(stem: str, ext: str) -> str:
        path = os.path.join(output_dir, report_filename(stem, stamp, ext))
        written.append(path)
        return path

    if bundle.config.generate_csv:
        save_csv(_path(REPO_METRICS_STEM, "csv"), REPO_METRICS_COLUMNS, repo_metrics_rows(bundle))
        save_csv(_path(CONTRIBUTOR_STEM, "csv"), ["contributor_login", "total_commits"],
                 ([r.contributor_login, r.total_commits] for r in bundle.contributor_summary))
        save_csv(_path(COMMIT_ACTIVITY_STEM, "csv"), ["date", "commit_count"],
                 ([r.date.isoformat(), r.commit_count] for r in bundle.commit_activity))
        save_csv(_path(LANGUAGE_STEM, "csv"), ["language", "count"],
                 ([r.language, r.count] for r in bundle.language_distribution))
        save_csv(_path(CLOSE_TIMES_STEM, "csv"),
                 ["repo_name", "issue_number", "close_time_days", "closed_at"],
                 ([r.repo_name, r.issue_number, round(r.close_time_days, 3), r.closed_at.isoformat()]
                  for r in bundle.issue_close_times))

    if bundle.config.generate_json:
        save_json(_path(SUMMARY_STEM, "json"), summary_document(bundle))

    if bundle.config.generate_markdown:
        written.append(write_markdown_summary(bundle, output_dir, log=log, timestamp=stamp))

    if written:
        log.info("reports.written", files=len(written), output_dir=output_dir)
    else:
        log.info("reports.disabled")
    return written


__all__ = [
    "REPO_METRICS_COLUMNS",
    "REPO_METRICS_STEM",
    "CONTRIBUTOR_STEM",
    "COMMIT_ACTIVITY_STEM",
    "LANGUAGE_STEM",
    "CLOSE_TIMES_STEM",
    "SUMMARY_STEM",
    "ensure_dir",
    "save_json",
    "save_csv",
    "report_filename",
    "repo_metrics_rows",
    "summary_document",
    "render_markdown_summary",
    "write_markdown_summary",
    "write_reports",
]
