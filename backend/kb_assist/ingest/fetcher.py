"""Single-page HTTP fetching."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

from kb_assist.core.errors import FetchError, InvalidURLError
from kb_assist.core.logging import get_logger

logger = get_logger(__name__)

_ALLOWED_SCHEMES = {"http", "https"}


@dataclass(slots=True)
class FetchedPage:
    url: str
    status: int
    html: str


def validate_url(url: str) -> str:
    """Return ``url`` stripped, or raise ``InvalidURLError``."""
    candidate = (url or "").strip()
    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in _ALLOWED_SCHEMES or not parsed.netloc:
        raise InvalidURLError(f"Not an absolute http(s) URL: {url!r}", url=url)
    return candidate


class PageFetcher:
    """Fetch one page; no retries, no link following beyond redirects."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = 15.0, user_agent: str | None = None) -> None:
        self.client = client
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent} if user_agent else {}

    async def fetch(self, url: str) -> FetchedPage:
        url = validate_url(url)
        try:
            response = await self.client.get(
                url,
                headers=self.headers,
                timeout=self.timeout,
                follow_redirects=True,
            )
        except httpx.TimeoutException as exc:
            raise FetchError(f"Timed out fetching {url}", url=url) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Could not fetch {url}: {exc}", url=url) from exc

        if not response.is_success:
            raise FetchError(
                f"Fetching {url} returned HTTP {response.status_code}",
                url=url,
                status=response.status_code,
            )
        logger.debug("Fetched %s (%s bytes)", url, len(response.content))
        return FetchedPage(url=str(response.url), status=response.status_code, html=response.text)


__all__ = ["FetchedPage", "PageFetcher", "validate_url"]
