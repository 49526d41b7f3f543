"""
Shared HTTP client for remote sensor APIs.

Provides a pre-configured ``requests.Session`` with a bounded default
timeout. Retries are disabled: a failed sensor request is reported as a
skipped sensor, and retrying belongs to the caller.

Usage::

    from agroclimate.sources.http import create_session

    s = create_session(timeout=10)
    resp = s.get("https://dashboard.example.com/api/farms", timeout=10)
    resp.raise_for_status()
"""

from __future__ import annotations

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from agroclimate import __version__

#: No retries, and non-2xx statuses are left to ``raise_for_status``.
NO_RETRY = Retry(total=0, connect=0, read=0, redirect=2, raise_on_status=False)

DEFAULT_TIMEOUT = 10  # seconds


def create_session(
    retry: Retry | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> requests.Session:
    """
    Build a ``requests.Session`` with the retry adapter mounted.

    Args:
        retry: Custom retry strategy (defaults to ``NO_RETRY``).
        timeout: Default timeout applied to every request.
    """
    s = requests.Session()
    adapter = HTTPAdapter(max_retries=retry or NO_RETRY)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    s.headers["User-Agent"] = f"agroclimate-monitor/{__version__}"
    s.headers["Accept"] = "application/json"

    # Inject a default timeout so no call can block forever.
    _original_send = s.send

    def _send_with_timeout(
        prepared: requests.PreparedRequest, **kwargs: object
    ) -> requests.Response:
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = timeout
        return _original_send(prepared, **kwargs)  # type: ignore[arg-type]

    s.send = _send_with_timeout  # type: ignore[method-assign]
    return s
