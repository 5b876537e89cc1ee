"""Expand organization names and owner/repo strings into concrete repository ids."""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from ..models import RepoId
from ..retrieval.config import BASE_URL
from ..retrieval.http_client import paged_get


def _unique(items: Sequence[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def list_org_repositories(session: requests.Session,
                          org: str,
                          *,
                          log: Any) -> Optional[List[RepoId]]:
    """Return full names of an organization's public repositories, or None on failure."""
    raw = paged_get(session, f"{BASE_URL}/orgs/{org}/repos", params={"type": "public"},
                    context=f"repos for org {org}", log=log)
    if raw is None:
        return None
    names: List[RepoId] = []
    for entry in raw:
        full_name = entry.get("full_name") if isinstance(entry, dict) else None
        if not full_name:
            log.warning("targets.entry_skipped", org=org, reason="missing full_name")
            continue
        names.append(full_name)
    return names


def identify_target_repositories(session: requests.Session,
                                 targets: Sequence[str],
                                 *,
                                 delay_sec: float,
                                 log: Any) -> Tuple[List[RepoId], Dict[str, str]]:
    """Resolve targets into a deduplicated repo list plus per-target error messages."""
    repo_ids: List[RepoId] = []
    errors: Dict[str, str] = {}
    unique_targets = _unique([t.strip() for t in targets if t and t.strip()])
    log.info("targets.resolving", targets=len(targets), unique=len(unique_targets))

    for target in unique_targets:
        if "/" in target:
            log.debug("targets.explicit", target=target)
            repo_ids.append(target)
            continue

        log.info("targets.org_listing", org=target)
        org_repos = list_org_repositories(session, target, log=log)
        if org_repos is None:
            log.error("targets.org_failed", org=target)
            errors[target] = "Failed to fetch repository list"
        elif not org_repos:
            log.warning("targets.org_empty", org=target)
        else:
            log.info("targets.org_listed", org=target, repos=len(org_repos))
            repo_ids.extend(org_repos)
        time.sleep(delay_sec * 0.5)

    resolved = _unique(repo_ids)
    log.info("targets.resolved", repos=len(resolved), errors=len(errors))
    return resolved, errors


__all__ = ["list_org_repositories", "identify_target_repositories"]
