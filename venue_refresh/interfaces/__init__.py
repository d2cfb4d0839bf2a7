"""Public interface definitions for all external collaborators.

Every external service the pipeline touches is accessed through the
abstract base classes defined here.  Concrete adapters live in
``venue_refresh/providers/`` and are wired together in
``venue_refresh/main.py``; tests inject in-memory fakes or mocks instead.

CONCRETE PROVIDER MAP:
    Interface          ->  Concrete implementations (in venue_refresh/providers/)
    ---------------------------------------------------------------------
    IStateStore        ->  FileStateStore, MemoryStateStore
    ILLMProvider       ->  AnthropicLLMProvider, OpenAILLMProvider,
                           OllamaLLMProvider
    IContentFetcher    ->  HttpPageFetcher
    IVenueRegistry     ->  JsonVenueRegistry
    IResultStore       ->  SQLiteResultStore
    INotifier          ->  TelegramNotifier
"""

from venue_refresh.interfaces.content_fetcher import IContentFetcher
from venue_refresh.interfaces.llm_provider import ILLMProvider
from venue_refresh.interfaces.notifier import INotifier
from venue_refresh.interfaces.result_store import IResultStore
from venue_refresh.interfaces.state_store import IStateStore
from venue_refresh.interfaces.venue_registry import IVenueRegistry

__all__ = [
    "IContentFetcher",
    "ILLMProvider",
    "INotifier",
    "IResultStore",
    "IStateStore",
    "IVenueRegistry",
]
