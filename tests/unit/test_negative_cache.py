"""Unit tests for the memo of conclusive LLM "not found" answers."""

from __future__ import annotations

from venue_refresh.models.extraction import Tier
from venue_refresh.providers.state.memory_state_store import MemoryStateStore
from venue_refresh.services.negative_cache import NegativeResultCache


class TestNegativeResultCache:
    def test_unknown_entity_is_not_negative(self, store: MemoryStateStore) -> None:
        cache = NegativeResultCache(store)
        assert cache.is_known_negative("v1", Tier.CONTENT_LLM, "fp", "v1") is False

    def test_remembered_miss_matches_same_content_and_prompt(self, store: MemoryStateStore) -> None:
        cache = NegativeResultCache(store)
        cache.remember("v1", Tier.CONTENT_LLM, "fp", "prompt-1", reason="no hours")
        assert cache.is_known_negative("v1", Tier.CONTENT_LLM, "fp", "prompt-1") is True

    def test_content_change_invalidates(self, store: MemoryStateStore) -> None:
        cache = NegativeResultCache(store)
        cache.remember("v1", Tier.CONTENT_LLM, "fp", "prompt-1")
        assert cache.is_known_negative("v1", Tier.CONTENT_LLM, "fp2", "prompt-1") is False

    def test_prompt_change_invalidates(self, store: MemoryStateStore) -> None:
        cache = NegativeResultCache(store)
        cache.remember("v1", Tier.CONTENT_LLM, "fp", "prompt-1")
        assert cache.is_known_negative("v1", Tier.CONTENT_LLM, "fp", "prompt-2") is False

    def test_tiers_are_independent(self, store: MemoryStateStore) -> None:
        cache = NegativeResultCache(store)
        cache.remember("v1", Tier.CONTENT_LLM, "fp", "p")
        assert cache.is_known_negative("v1", Tier.KNOWLEDGE_LLM, "fp", "p") is False

    def test_missing_fingerprint_never_memoised(self, store: MemoryStateStore) -> None:
        cache = NegativeResultCache(store)
        cache.remember("v1", Tier.CONTENT_LLM, None, "p")
        assert store.list_keys("negatives") == []
        assert cache.is_known_negative("v1", Tier.CONTENT_LLM, None, "p") is False

    def test_forget_drops_every_tier(self, store: MemoryStateStore) -> None:
        cache = NegativeResultCache(store)
        cache.remember("v1", Tier.CONTENT_LLM, "fp", "p")
        cache.remember("v1", Tier.KNOWLEDGE_LLM, "fp", "p")
        cache.forget("v1")
        assert store.list_keys("negatives") == []

    def test_corrupt_memo_is_ignored(self, store: MemoryStateStore) -> None:
        cache = NegativeResultCache(store)
        cache.remember("v1", Tier.CONTENT_LLM, "fp", "p")
        (key,) = store.list_keys("negatives")
        store.write(key, b"not json")
        assert cache.is_known_negative("v1", Tier.CONTENT_LLM, "fp", "p") is False

    def test_odd_ids_stay_inside_prefix(self, store: MemoryStateStore) -> None:
        cache = NegativeResultCache(store)
        cache.remember("../a/b", Tier.CONTENT_LLM, "fp", "p")
        (key,) = store.list_keys("negatives")
        assert key.count("/") == 2
        assert cache.is_known_negative("../a/b", Tier.CONTENT_LLM, "fp", "p") is True
