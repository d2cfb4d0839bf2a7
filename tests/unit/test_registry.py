"""Unit tests for the JSON venue registry."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from venue_refresh.providers.registry.json_venue_registry import JsonVenueRegistry
from venue_refresh.utils.errors import ConfigurationError


def _write(tmp_path: Path, data: object) -> Path:
    path = tmp_path / "venues.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestJsonVenueRegistry:
    @pytest.mark.asyncio
    async def test_top_level_list(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [
            {"id": "b", "name": "Bravo", "urls": ["https://b.example.com"]},
            {"id": "a", "name": "Alpha", "address": "1 Main St", "urls": ["https://a.example.com"]},
        ])
        venues = await JsonVenueRegistry(path).list_venues()
        assert [v.id for v in venues] == ["a", "b"]
        assert venues[0].address == "1 Main St"

    @pytest.mark.asyncio
    async def test_wrapped_list_numeric_ids_and_website(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"venues": [{"id": 42, "name": "Answer", "website": "https://42.example.com"}]})
        (venue,) = await JsonVenueRegistry(path).list_venues()
        assert venue.id == "42"
        assert venue.urls == ["https://42.example.com"]

    @pytest.mark.asyncio
    async def test_invalid_entries_skipped(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [
            "not an object",
            {"id": "no-urls", "name": "Nowhere"},
            {"name": "no id", "urls": ["https://x"]},
            {"id": "ok", "name": "Fine", "urls": ["https://ok.example.com"]},
        ])
        venues = await JsonVenueRegistry(path).list_venues()
        assert [v.id for v in venues] == ["ok"]

    @pytest.mark.asyncio
    async def test_duplicate_id_last_wins(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [
            {"id": "a", "name": "Old", "urls": ["https://a"]},
            {"id": "a", "name": "New", "urls": ["https://a"]},
        ])
        (venue,) = await JsonVenueRegistry(path).list_venues()
        assert venue.name == "New"

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            await JsonVenueRegistry(tmp_path / "absent.json").list_venues()

    @pytest.mark.asyncio
    async def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "venues.json"
        path.write_text("{nope", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            await JsonVenueRegistry(path).list_venues()

    @pytest.mark.asyncio
    async def test_wrong_shape(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"venues": "everything"})
        with pytest.raises(ConfigurationError):
            await JsonVenueRegistry(path).list_venues()
