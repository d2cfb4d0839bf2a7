"""HTTP page fetcher using httpx and BeautifulSoup.

Fetches every URL of a venue and reduces the HTML to visible text with one
line per block element, which is what the tier-1 hours parser expects.
Scripts, styles and other non-visible elements are dropped.
"""

from __future__ import annotations

import httpx
import structlog
from bs4 import BeautifulSoup

from venue_refresh.config.schema import FetchConfig
from venue_refresh.interfaces.content_fetcher import IContentFetcher
from venue_refresh.models.snapshot import Page
from venue_refresh.models.venue import Venue
from venue_refresh.utils.clock import Clock, SystemClock
from venue_refresh.utils.errors import FetchError
from venue_refresh.utils.text_normalizer import normalize_url

logger = structlog.get_logger(logger_name=__name__)

_INVISIBLE_TAGS = ("script", "style", "noscript", "template", "svg", "iframe", "head")


def html_to_text(html: str) -> str:
    """Return the visible text of *html*, one non-empty line per text block."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_INVISIBLE_TAGS):
        tag.decompose()
    lines = (line.strip() for line in soup.get_text(separator="\n").splitlines())
    return "\n".join(line for line in lines if line)


class HttpPageFetcher(IContentFetcher):
    """Content fetcher backed by an ``httpx.AsyncClient``.

    Pass ``http_client`` to share a client (tests pass one built on
    ``httpx.MockTransport``); otherwise one is created and owned here and
    closed by :meth:`close`.
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config or FetchConfig()
        self._clock = clock or SystemClock()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout_seconds),
            headers={
                "User-Agent": self._config.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
            follow_redirects=True,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _fetch_page(self, url: str) -> Page:
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise FetchError(
                message=f"Timeout fetching {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                message=f"HTTP {exc.response.status_code} for {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(
                message=f"HTTP error fetching {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content_type = response.headers.get("content-type", "")
        if "html" in content_type or not content_type:
            text = html_to_text(response.text)
        else:
            text = response.text
        return Page(
            url=normalize_url(url),
            text=text[: self._config.max_chars_per_page],
            captured_at=self._clock.now(),
        )

    async def fetch(self, venue: Venue) -> list[Page]:
        """Fetch every URL of *venue*; failed URLs are logged and skipped."""
        pages: list[Page] = []
        errors: list[str] = []
        for url in venue.urls:
            try:
                pages.append(await self._fetch_page(url))
            except FetchError as exc:
                logger.warning("page_fetch_failed", venue_id=venue.id, url=url, error=exc.message)
                errors.append(exc.message)

        if not pages:
            raise FetchError(
                message=f"no page fetched for {venue.id}: {'; '.join(errors) or 'no urls'}",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "venue_fetched",
            venue_id=venue.id,
            pages=len(pages),
            failed=len(errors),
            chars=sum(len(page.text) for page in pages),
        )
        return pages

    def get_provider_name(self) -> str:
        return "http"
