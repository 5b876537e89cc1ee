"""GitHub analytics pipeline: configuration, target resolution, and orchestration."""

from .runner import fetch_all_repo_data, main, run_analysis

__all__ = ["fetch_all_repo_data", "main", "run_analysis"]
