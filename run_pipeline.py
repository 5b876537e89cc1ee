"""Convenience shim to run the analytics pipeline from a source checkout."""

from __future__ import annotations

import sys

from gh_analytics.pipeline.runner import main as run_pipeline


if __name__ == "__main__":
    run_pipeline(sys.argv[1:])
