"""HTTP downloads shared by the catalog walker and the resource processor."""

from __future__ import annotations

import logging
import time

import requests

from catalog_ingest.errors import FetchError

logger = logging.getLogger(__name__)

USER_AGENT = "catalog-ingest/0.1"


def new_session() -> requests.Session:
    """Return a session with the service's default headers."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    return session


def download(
    url: str,
    *,
    session: requests.Session,
    timeout: float = 60.0,
    max_retries: int = 3,
) -> bytes:
    """GET *url* and return the body bytes.

    Transport errors and 5xx responses are retried with exponential backoff
    (``2 ** attempt`` seconds); 4xx responses fail immediately.

    Raises
    ------
    FetchError
        When the download still fails after *max_retries* attempts.
    """
    last_exc: Exception | None = None
    status: int | None = None
    attempts = max(1, max_retries)
    for attempt in range(1, attempts + 1):
        try:
            resp = session.get(url, timeout=timeout)
            status = resp.status_code
            resp.raise_for_status()
            return resp.content
        except requests.HTTPError as exc:
            last_exc = exc
            if status is not None and status < 500:
                break
        except requests.RequestException as exc:
            last_exc = exc
            status = None
        if attempt < attempts:
            wait = 2 ** attempt
            logger.warning("Retry %d/%d for %s (wait %ds): %s", attempt, attempts, url, wait, last_exc)
            time.sleep(wait)

    raise FetchError(url, str(last_exc), status=status) from last_exc
