"""Feed service — obtains the raw vendor XML for an import run.

Two sources:
1. Inline: a POST body that already holds a <list> document is used verbatim.
2. Remote: otherwise the configured vendor URL is fetched once, with a bounded
   timeout and no retries. Failures surface as FeedAcquisitionError.
"""
from typing import Optional

import requests

from app.core.exceptions import FeedAcquisitionError
from app.core.logging import get_logger

logger = get_logger(__name__)

FEED_MARKER = "<list"


def extract_inline_feed(method: str, body: Optional[bytes]) -> Optional[str]:
    """Return the request body when it is a textual feed document, else None."""
    if method.upper() != "POST" or not body:
        return None
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        logger.info("POST body is not UTF-8 text — falling back to remote feed")
        return None
    if FEED_MARKER not in text:
        return None
    return text


class FeedClient:
    """HTTP client for the vendor XML feed."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        user_agent: str = "PropertyImporter/2.0",
    ):
        self.url = url
        self.timeout = timeout
        self.user_agent = user_agent

        self._session: Optional[requests.Session] = None

    @property
    def session(self) -> requests.Session:
        """HTTP session, created on first use."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({
                "User-Agent": self.user_agent,
                "Accept": "application/xml, text/xml",
                "Accept-Encoding": "gzip",
            })
        return self._session

    def fetch(self) -> bytes:
        """Fetch the feed body.

        Raises:
            FeedAcquisitionError: timeout, network failure, or non-2xx status.
        """
        logger.info("Fetching vendor feed", extra={"url": self.url})
        try:
            response = self.session.get(self.url, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.error("Timeout (%ss) fetching %s", self.timeout, self.url)
            raise FeedAcquisitionError(
                f"Timed out after {self.timeout}s fetching {self.url}",
                detail={"url": self.url, "reason": str(e)},
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error("Request error for %s: %s", self.url, str(e))
            raise FeedAcquisitionError(
                f"Failed to fetch XML data: {e}",
                detail={"url": self.url, "reason": str(e)},
            ) from e

        if not 200 <= response.status_code < 300:
            logger.warning("HTTP %d for %s", response.status_code, self.url, extra={"status": response.status_code})
            raise FeedAcquisitionError(
                f"Failed to fetch XML data: HTTP {response.status_code}",
                detail={"url": self.url, "status": response.status_code},
            )

        return response.content

    def close(self) -> None:
        """Close the HTTP session, if one was opened."""
        if self._session is not None:
            self._session.close()
            self._session = None
