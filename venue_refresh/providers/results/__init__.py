"""Result store backends."""

from venue_refresh.providers.results.sqlite_result_store import SQLiteResultStore

__all__ = ["SQLiteResultStore"]
