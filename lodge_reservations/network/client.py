"""
Client module for fetching external channel calendar feeds (iCal over HTTP)
with support for timeouts and bounded retries.
"""

import time
from typing import Optional

import requests
import structlog

from lodge_reservations.config import CALENDAR_FETCH_TIMEOUT
from lodge_reservations.metrics import calendar_latency, calendar_requests

logger = structlog.get_logger(__name__)

MAX_RETRIES = 2
RETRY_DELAY = 1.0
USER_AGENT = "lodge-reservations/1.0 (+calendar sync)"


def should_retry(res: Optional[requests.Response], err: Optional[Exception]) -> bool:
    """
    Determine whether the request should be retried based on response or error.

    Args:
        res (Optional[requests.Response]): Response object if available.
        err (Optional[Exception]): Exception raised by the request, if any.

    Returns:
        bool: True if the request should be retried, False otherwise.
    """
    if res is not None and res.status_code == 429:
        return True
    if isinstance(err, (requests.Timeout, requests.ConnectionError)):
        return True
    if res is not None and 500 <= res.status_code < 600:
        return True
    return False


def fetch_calendar(url: str, timeout: Optional[float] = None) -> str:
    """
    Download an iCal feed.

    Retries on 429, 5xx, timeouts and connection errors, at most
    ``MAX_RETRIES`` times with a linear backoff. Anything else fails at once.

    Args:
        url (str): Feed URL from the channel mapping.
        timeout (Optional[float]): Per-request timeout in seconds.

    Returns:
        str: Raw calendar text.

    Raises:
        requests.RequestException: If the request fails after all retries.
    """
    timeout = timeout or CALENDAR_FETCH_TIMEOUT
    headers = {"User-Agent": USER_AGENT, "Accept": "text/calendar, */*"}
    retries = 0

    while True:
        res: Optional[requests.Response] = None
        try:
            logger.debug("calendar_fetch", url=url, attempt=retries + 1)

            start_time = time.time()
            res = requests.get(url, headers=headers, timeout=timeout)
            latency = time.time() - start_time

            calendar_requests.labels(status_code=str(res.status_code)).inc()
            calendar_latency.observe(latency)

            res.raise_for_status()
            return res.text

        except requests.RequestException as err:
            if res is None:
                calendar_requests.labels(status_code="error").inc()
            retries += 1
            if retries > MAX_RETRIES or not should_retry(res, err):
                logger.warning("calendar_fetch_failed", url=url, attempts=retries, error=str(err))
                raise
            logger.warning("calendar_fetch_retry", url=url, attempt=retries, error=str(err))
            time.sleep(RETRY_DELAY * retries)
