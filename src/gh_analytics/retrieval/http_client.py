"""HTTP helpers for the GitHub REST API: session setup, error classification, pagination."""

from __future__ import annotations

import os
import time
from typing import Any, Dict, List, Optional

import requests

from .config import (
    BACKOFF_BASE_SEC,
    BASE_URL,
    MAX_PAGES,
    MAX_RATE_LIMIT_RETRIES,
    MAX_WAIT_ON_403,
    PER_PAGE,
    REQUEST_TIMEOUT,
    USER_AGENT,
)
from .errors import SOFT_KINDS, AuthenticationError, ErrorKind, GitHubAPIError, classify_status


def build_session(token: Optional[str]) -> requests.Session:
    """Return a session that sends the GitHub JSON media type and the PAT on every call."""
    session = requests.Session()
    session.headers.update(
        {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }
    )
    if token:
        session.headers["Authorization"] = f"token {token}"
    return session


def sleep_with_jitter(base: float) -> None:
    """Pause execution with +/- 25% jitter to avoid synchronized retries."""
    jitter = base * 0.25 * (0.5 - (os.urandom(1)[0] / 255.0))
    time.sleep(max(0.0, base + jitter))


def error_message(resp: requests.Response) -> str:
    """Extract a short, human-readable message from an error response."""
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:300]
    if not isinstance(body, dict):
        return str(body)[:300]
    return str(body.get("message") or body.get("error") or "")[:300]


def _is_rate_limited(resp: requests.Response) -> bool:
    if resp.status_code == 429:
        return True
    headers = resp.headers or {}
    if headers.get("X-RateLimit-Remaining") == "0":
        return True
    return str(headers.get("Retry-After") or "").isdigit()


def rate_limit_wait(resp: requests.Response, attempt: int) -> float:
    """Seconds to wait before retrying a rate-limited call, capped by MAX_WAIT_ON_403."""
    headers = resp.headers or {}
    retry_after = str(headers.get("Retry-After") or "")
    reset = str(headers.get("X-RateLimit-Reset") or "")
    if retry_after.isdigit():
        wait_sec = int(retry_after)
    elif reset.isdigit():
        wait_sec = max(0, int(reset) - int(time.time())) + 1
    else:
        wait_sec = BACKOFF_BASE_SEC * (2 ** (attempt - 1))
    return min(wait_sec, MAX_WAIT_ON_403)


def request(session: requests.Session,
            url: str,
            params: Optional[Dict[str, Any]] = None,
            *,
            log: Any,
            max_rate_limit_retries: Optional[int] = None) -> requests.Response:
    """Issue a GET and return the response, raising GitHubAPIError for anything unusable.

    Only the rate-limit class is retried, and only up to ``max_rate_limit_retries``
    times (``MAX_RATE_LIMIT_RETRIES`` by default, which is 0).
    """
    retries = MAX_RATE_LIMIT_RETRIES if max_rate_limit_retries is None else max_rate_limit_retries
    attempt = 0
    while True:
        attempt += 1
        try:
            resp = session.get(url, params=params, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            raise GitHubAPIError(ErrorKind.UNCLASSIFIED, url, None, str(exc)) from exc

        status = resp.status_code
        if 200 <= status < 300 and status != 204:
            return resp

        kind = classify_status(status)
        if kind is ErrorKind.RATE_LIMITED_OR_FORBIDDEN and _is_rate_limited(resp) and attempt <= retries:
            wait_sec = rate_limit_wait(resp, attempt)
            log.warning("http.rate_limited", url=url, status=status, wait_seconds=wait_sec,
                        attempt=attempt, max_retries=retries)
            sleep_with_jitter(wait_sec)
            continue

        message = "" if status == 204 else error_message(resp)
        raise GitHubAPIError(kind, url, status, message)


def _decode_json(resp: requests.Response, url: str) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise GitHubAPIError(ErrorKind.UNCLASSIFIED, url, resp.status_code,
                             f"undecodable body: {exc}") from exc


def log_fetch_error(log: Any, err: GitHubAPIError, context: str) -> None:
    """Log a classified failure at the severity its kind warrants."""
    fields = {"context": context, "kind": err.kind.value, "status": err.status,
              "url": err.url, "detail": err.message}
    if err.kind in SOFT_KINDS:
        if err.kind is ErrorKind.CONFLICT:
            log.warning("fetch.conflict", hint="repository is probably empty", **fields)
        else:
            log.warning("fetch.no_content", **fields)
    elif err.kind is ErrorKind.NOT_FOUND:
        log.error("fetch.not_found", **fields)
    elif err.kind is ErrorKind.UNAUTHORIZED:
        log.error("fetch.unauthorized", hint="check token permissions", **fields)
    elif err.kind is ErrorKind.RATE_LIMITED_OR_FORBIDDEN:
        log.error("fetch.forbidden", hint="rate limit exceeded or insufficient permissions", **fields)
    else:
        log.error("fetch.failed", **fields)


def get_json(session: requests.Session,
             url: str,
             *,
             params: Optional[Dict[str, Any]] = None,
             context: str,
             log: Any) -> Optional[Any]:
    """Fetch a single JSON document, returning None (after logging) on failure."""
    try:
        resp = request(session, url, params, log=log)
        return _decode_json(resp, url)
    except GitHubAPIError as err:
        log_fetch_error(log, err, context)
        return None


def check_authentication(session: requests.Session, *, log: Any) -> str:
    """Confirm the session's token is accepted and return the authenticated login."""
    url = f"{BASE_URL}/user"
    try:
        resp = request(session, url, log=log)
        body = _decode_json(resp, url)
    except GitHubAPIError as err:
        log_fetch_error(log, err, "authentication check")
        raise AuthenticationError(str(err)) from err
    login = body.get("login") if isinstance(body, dict) else None
    return login or "unknown"


def paged_get(session: requests.Session,
              url: str,
              *,
              params: Optional[Dict[str, Any]] = None,
              context: str,
              log: Any,
              max_pages: int = MAX_PAGES) -> Optional[List[Dict[str, Any]]]:
    """Follow ``Link: rel="next"`` pages and return every item, or None on any failure.

    Iteration stops when there is no next link, when a later page comes back
    empty, or once ``max_pages`` requests have been made.
    """
    results: List[Dict[str, Any]] = []
    page_url = url
    page_params: Optional[Dict[str, Any]] = {**(params or {}), "per_page": PER_PAGE}
    pages = 0

    while True:
        try:
            resp = request(session, page_url, page_params, log=log)
            batch = _decode_json(resp, page_url)
        except GitHubAPIError as err:
            log_fetch_error(log, err, context)
            return None
        pages += 1

        if not batch:
            if pages > 1:
                log.warning("fetch.page_empty", context=context, page=pages)
            break
        if not isinstance(batch, list):
            log_fetch_error(
                log,
                GitHubAPIError(ErrorKind.UNCLASSIFIED, page_url, resp.status_code,
                               f"expected a list, got {type(batch).__name__}"),
                context,
            )
            return None
        results.extend(batch)
        log.debug("fetch.page", context=context, page=pages, count=len(batch))

        next_url = ((resp.links or {}).get("next") or {}).get("url")
        if not next_url:
            break
        if pages >= max_pages:
            log.warning("fetch.page_limit", context=context, max_pages=max_pages,
                        items=len(results))
            break
        page_url, page_params = next_url, None

    log.debug("fetch.done", context=context, pages=pages, items=len(results))
    return results


__all__ = [
    "build_session",
    "sleep_with_jitter",
    "error_message",
    "rate_limit_wait",
    "request",
    "log_fetch_error",
    "get_json",
    "check_authentication",
    "paged_get",
]
