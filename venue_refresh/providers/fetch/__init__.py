"""Content fetchers."""

from venue_refresh.providers.fetch.http_page_fetcher import HttpPageFetcher, html_to_text

__all__ = ["HttpPageFetcher", "html_to_text"]
