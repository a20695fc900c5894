"""Helper utilities.

This module centralises common helper functions such as creating a
configured HTTP session, applying retry policies to network calls and
producing timestamps in the format stored on disk.
"""

from __future__ import annotations

import datetime as _dt
import logging
from typing import Any, Callable, Optional

import requests
from requests import Response
from tenacity import (after_log, retry, retry_if_exception_type,
                      stop_after_attempt, wait_exponential)


logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (VoucherWatcher)"


def get_http_session() -> requests.Session:
    """Return a new HTTP session with sensible defaults.

    The session sends JSON accept/content-type headers and a descriptive
    User-Agent.  No Authorization header is ever set.  Caller is responsible
    for closing the session or letting it be garbage collected.
    """
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
    )
    # Respect environment proxies if configured (requests does this by default)
    return session


class UpstreamError(Exception):
    """Raised when the campaign endpoint does not return a usable response.

    ``status_code`` is None when no HTTP response was received at all.
    """

    def __init__(
        self,
        status_code: Optional[int],
        status_text: str = "",
        body_excerpt: str = "",
    ) -> None:
        self.status_code = status_code
        self.status_text = status_text
        self.body_excerpt = body_excerpt
        head = f"API error {status_code}" if status_code is not None else "API unreachable"
        message = f"{head} {status_text}".strip()
        if body_excerpt:
            message = f"{message} :: {body_excerpt}"
        super().__init__(message)


class MalformedResponseError(UpstreamError):
    """Raised when a success response carries a body that is not valid JSON."""


def retryable_request(
    method: Callable[..., Response],
    *,
    attempts: int = 5,
) -> Callable[..., Response]:
    """Apply retry logic to HTTP calls.

    The decorated function must accept a `requests.Session` as its first
    argument, followed by URL and optional kwargs, and return a
    `requests.Response`.  Only connection errors and timeouts are retried;
    any response that arrives, whatever its status, is returned to the
    caller untouched so the status can be reported as-is.
    """

    @retry(
        reraise=True,
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=(
            retry_if_exception_type(requests.ConnectionError)
            | retry_if_exception_type(requests.Timeout)
        ),
        after=after_log(logger, logging.WARNING),
    )
    def wrapper(session: requests.Session, url: str, **kwargs: Any) -> Response:
        return method(session, url, **kwargs)

    return wrapper


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = _dt.datetime.now(_dt.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = [
    "get_http_session",
    "retryable_request",
    "utc_now_iso",
    "UpstreamError",
    "MalformedResponseError",
    "USER_AGENT",
]
