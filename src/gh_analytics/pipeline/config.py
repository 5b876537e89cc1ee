"""Run configuration for the analytics pipeline and the CLI that produces it."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..secrets import first_github_token, load_local_secrets

DEFAULT_OUTPUT_DIR = "github_analytics_output"
DEFAULT_COMMIT_HISTORY_MONTHS = 12
DEFAULT_REPO_DELAY_SEC = 0.2


@dataclass(frozen=True)
class AnalyticsConfig:
    """Resolved, read-only settings for one analytics run."""

    targets: Tuple[str, ...]
    auth_token: str
    output_dir: str = DEFAULT_OUTPUT_DIR
    commit_history_months: int = DEFAULT_COMMIT_HISTORY_MONTHS
    repo_processing_delay_sec: float = DEFAULT_REPO_DELAY_SEC
    fetch_contributors: bool = True
    fetch_commit_history: bool = True
    fetch_pull_requests: bool = True
    generate_csv: bool = True
    generate_json: bool = True
    generate_markdown: bool = True
    log_level: str = "INFO"
    log_format: str = "console"
    verbose: bool = False

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.verbose else self.log_level.upper()


def build_arg_parser() -> argparse.ArgumentParser:
    """Return the CLI parser used by the pipeline entry point."""

    parser = argparse.ArgumentParser(
        description="Collect GitHub activity for organizations or owner/repo targets and summarise it.",
    )
    parser.add_argument("targets", nargs="*",
                        help="organization names and/or owner/repo strings")
    parser.add_argument("--token", default=None,
                        help="GitHub PAT (defaults to $GITHUB_TOKEN or local_secrets.json)")
    parser.add_argument("--output-dir", default=DEFAULT_OUTPUT_DIR)
    parser.add_argument("--months", type=int, default=DEFAULT_COMMIT_HISTORY_MONTHS,
                        help="months of commit history to fetch")
    parser.add_argument("--delay", type=float, default=DEFAULT_REPO_DELAY_SEC,
                        help="seconds to pause after each repository")
    parser.add_argument("--no-contributors", action="store_true")
    parser.add_argument("--no-commits", action="store_true")
    parser.add_argument("--no-prs", action="store_true")
    parser.add_argument("--no-csv", action="store_true")
    parser.add_argument("--no-json", action="store_true")
    parser.add_argument("--no-markdown", action="store_true")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-format", choices=["console", "json"], default="console")
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments; accepts argv overrides for testing."""

    return build_arg_parser().parse_args(argv)


def resolve_token(explicit: Optional[str] = None) -> str:
    """Pick the token from the flag, then $GITHUB_TOKEN, then local_secrets.json."""

    if explicit:
        return explicit
    env_token = os.getenv("GITHUB_TOKEN")
    if env_token:
        return env_token
    return first_github_token(load_local_secrets()) or ""


def _clean_targets(raw: Sequence[str]) -> List[str]:
    return [t.strip() for t in raw if t and t.strip()]


def resolve_settings(args: Optional[argparse.Namespace] = None) -> AnalyticsConfig:
    """Return immutable settings built from parsed CLI arguments."""

    args = args or parse_args()
    return AnalyticsConfig(
        targets=tuple(_clean_targets(args.targets)),
        auth_token=resolve_token(args.token),
        output_dir=args.output_dir,
        commit_history_months=int(args.months),
        repo_processing_delay_sec=max(0.0, float(args.delay)),
        fetch_contributors=not args.no_contributors,
        fetch_commit_history=not args.no_commits,
        fetch_pull_requests=not args.no_prs,
        generate_csv=not args.no_csv,
        generate_json=not args.no_json,
        generate_markdown=not args.no_markdown,
        log_level=str(args.log_level).upper(),
        log_format=args.log_format,
        verbose=bool(args.verbose),
    )


__all__ = [
    "DEFAULT_OUTPUT_DIR",
    "DEFAULT_COMMIT_HISTORY_MONTHS",
    "DEFAULT_REPO_DELAY_SEC",
    "AnalyticsConfig",
    "build_arg_parser",
    "parse_args",
    "resolve_token",
    "resolve_settings",
]
