"""
HTTP plumbing shared by every GitHub call: session setup, primary and
secondary rate-limit handling, bounded backoff and code-search spacing.

Tunable through the environment:
    GITHUB_REQ_DELAY          polite delay before each request (seconds)
    GITHUB_REQ_MAX_ATTEMPTS   attempts for 429/5xx and connection errors
    GITHUB_REQ_BACKOFF_BASE   exponential backoff base
"""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

TRANSIENT_STATUSES = (429, 500, 502, 503, 504)
# Code search allows roughly ten requests per minute
CODE_SEARCH_INTERVAL_SEC = 7.0
# Added on top of X-RateLimit-Reset to absorb clock skew
RESET_MARGIN_SEC = 2.0

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    delay_sec: float = 0.35
    max_attempts: int = 6
    backoff_base: float = 1.7

    @classmethod
    def from_env(cls) -> 'RetryPolicy':
        return cls(
            delay_sec=float(os.getenv("GITHUB_REQ_DELAY", str(cls.delay_sec))),
            max_attempts=int(os.getenv("GITHUB_REQ_MAX_ATTEMPTS", str(cls.max_attempts))),
            backoff_base=float(os.getenv("GITHUB_REQ_BACKOFF_BASE", str(cls.backoff_base))),
        )

    def backoff(self, attempt: int) -> float:
        return self.backoff_base ** (attempt - 1)


DEFAULT_POLICY = RetryPolicy.from_env()


def make_rate_limited_session(token: Optional[str], user_agent: str = "telco-bot") -> requests.Session:
    """Session with urllib3 retries for transient statuses and GitHub headers.

    Anonymous when ``token`` is empty (raw downloads, go.dev, Slack).
    """
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=Retry(
        total=3,
        backoff_factor=0.5,
        status_forcelist=list(TRANSIENT_STATUSES),
        allowed_methods=["GET", "POST", "PATCH"],
        raise_on_status=False,
    ))
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({
        "Accept": "application/vnd.github.v3+json",
        "User-Agent": user_agent or "telco-bot",
    })
    if token:
        session.headers["Authorization"] = f"token {token}"
    return session


def _compute_rate_limit_sleep(resp: requests.Response) -> Optional[float]:
    """Seconds to wait before retrying a rate-limited response, or None.

    Primary limit: 403/429 with ``X-RateLimit-Remaining: 0`` waits until
    ``X-RateLimit-Reset``. Secondary limit: 403/429 carrying ``Retry-After``.
    """
    if resp.status_code not in (403, 429):
        return None
    try:
        if int(resp.headers.get("X-RateLimit-Remaining", "1")) == 0:
            reset = int(resp.headers.get("X-RateLimit-Reset", "0"))
            return max(0.0, reset - time.time() + RESET_MARGIN_SEC)
        retry_after = resp.headers.get("Retry-After")
        if retry_after is not None:
            return max(0.0, float(retry_after))
    except ValueError:
        return None
    return None


def request_with_rate_limit(
    session: requests.Session,
    method: str,
    url: str,
    *,
    logger: Optional[logging.Logger] = None,
    min_delay_sec: Optional[float] = None,
    max_attempts: Optional[int] = None,
    policy: RetryPolicy = DEFAULT_POLICY,
    **kwargs: Any,
) -> requests.Response:
    """Send one request, waiting out rate limits and retrying transient failures.

    Rate-limit waits do not consume attempts. After ``max_attempts`` transient
    responses the last one is returned for the caller to ``raise_for_status()``;
    connection errors are re-raised.
    """
    log = logger or _log
    delay = policy.delay_sec if min_delay_sec is None else min_delay_sec
    attempts = max_attempts or policy.max_attempts
    kwargs.setdefault("timeout", 30)
    if delay > 0:
        time.sleep(delay)

    attempt = 0
    while True:
        attempt += 1
        try:
            resp = session.request(method, url, **kwargs)
        except requests.RequestException as e:
            if attempt >= attempts:
                raise
            wait = policy.backoff(attempt)
            log.warning(f"{method} {url} failed (attempt {attempt}/{attempts}): {e}; retrying in {wait:.1f}s")
            time.sleep(wait)
            continue

        wait = _compute_rate_limit_sleep(resp)
        if wait is not None:
            log.warning(f"GitHub rate limit hit on {method} {url}; sleeping {wait:.1f}s")
            time.sleep(wait)
            continue

        if resp.status_code in TRANSIENT_STATUSES and attempt < attempts:
            wait = policy.backoff(attempt)
            log.warning(f"HTTP {resp.status_code} on {method} {url} (attempt {attempt}/{attempts}); "
                        f"retrying in {wait:.1f}s")
            time.sleep(wait)
            continue
        return resp


class SearchThrottle:
    """Keeps a fixed minimum spacing between consecutive code-search calls."""

    def __init__(self, interval_sec: float = CODE_SEARCH_INTERVAL_SEC,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.interval_sec = interval_sec
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None

    def wait(self) -> None:
        if self._last_call is not None:
            elapsed = self._clock() - self._last_call
            if elapsed < self.interval_sec:
                self._sleep(self.interval_sec - elapsed)
        self._last_call = self._clock()
