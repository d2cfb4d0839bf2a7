"""LLM-backed operating-hours extraction (tiers 2 and 3).

Tier 2 -- **content LLM**: one request per venue containing the venue's page
text (truncated).  The model must answer with a strict JSON object::

    {"found": true, "hours": {"mon": {"open": "11:00", "close": "22:00"}, "sun": "closed"}}
    {"found": false}

Tier 3 -- **knowledge LLM**: one request per batch of venues (name + address
only, no page content).  The model answers with a JSON array correlated by
list index::

    [{"index": 0, "hours": {...}}, {"index": 1, "hours": null}]

Every response is validated into exactly one of
:class:`Resolved`, :class:`NotFound` or :class:`Malformed`.  Malformed
output is never raised; the tier coordinator escalates it like a miss.

Rate limits (:class:`RateLimitError`) and provider failures propagate to the
caller unchanged.  The per-call deadline is enforced here with
``asyncio.wait_for`` on top of the SDK's own timeout and surfaces as
:class:`LLMTimeoutError`.

Prompts are versioned; the version is stored with every result so results
produced by an older prompt can be found and re-extracted.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from venue_refresh.config.schema import LLMConfig, Tier2Config, Tier3Config
from venue_refresh.interfaces.llm_provider import ILLMProvider
from venue_refresh.models.extraction import (
    DayHours,
    LLMOutcome,
    Malformed,
    NotFound,
    OperatingHours,
    Resolved,
)
from venue_refresh.models.venue import Venue
from venue_refresh.services.hours_parser import canonical_day, normalize_time
from venue_refresh.utils.errors import LLMTimeoutError
from venue_refresh.utils.logging import get_logger

logger = get_logger(__name__)

CONTENT_PROMPT_VERSION = "hours-content-v1"
KNOWLEDGE_PROMPT_VERSION = "hours-knowledge-v1"

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

_CONTENT_SYSTEM_PROMPT = """\
You extract operating hours from restaurant/bar website content.

Return ONLY valid JSON in this exact format:
{
  "found": true,
  "hours": {
    "mon": {"open": "11:00", "close": "22:00"},
    "tue": {"open": "11:00", "close": "22:00"},
    "wed": {"open": "11:00", "close": "22:00"},
    "thu": {"open": "11:00", "close": "23:00"},
    "fri": {"open": "11:00", "close": "23:00"},
    "sat": {"open": "10:00", "close": "23:00"},
    "sun": {"open": "10:00", "close": "21:00"}
  }
}

Rules:
- Use 24-hour format (e.g., "22:00" not "10:00 PM")
- Use day abbreviations: mon, tue, wed, thu, fri, sat, sun
- If closed on a day, use "closed" as the value instead of an object
- If you cannot find hours, return {"found": false}
- Only look for REGULAR BUSINESS HOURS, not happy hour or event times
- Output ONLY valid JSON, no explanation text"""

_KNOWLEDGE_SYSTEM_PROMPT = (
    "You are a helpful assistant that knows the regular operating hours of "
    "restaurants and bars. Return ONLY a valid JSON array."
)

_KNOWLEDGE_USER_TEMPLATE = """\
What are the regular operating hours for each of these restaurants/bars?

{venue_list}

Return a JSON array where each element has:
{{"index": <number matching the list above>, "hours": {{"mon": {{"open": "11:00", "close": "22:00"}}, "tue": ...}}}}

Use 24-hour format. Day abbreviations: mon, tue, wed, thu, fri, sat, sun. \
If a day is closed, use "closed" as the value. If you don't know a venue's \
hours, still include it with "hours": null.
Return ONLY a valid JSON array."""


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _strip_fences(response: str) -> str:
    text = response.strip()
    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()
    return text


def extract_json_object(response: str) -> dict[str, Any]:
    """Pull the outermost JSON object out of an LLM response.

    Handles markdown fences and preamble/trailing prose.

    Raises
    ------
    ValueError
        If no JSON object can be decoded (``json.JSONDecodeError`` included).
    """
    text = _strip_fences(response)
    if not text.startswith("{"):
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("no JSON object in response")
        text = text[start : end + 1]
    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise ValueError("response is not a JSON object")
    return parsed


def extract_json_array(response: str) -> list[Any]:
    """Pull the outermost JSON array out of an LLM response.

    Raises
    ------
    ValueError
        If no JSON array can be decoded.
    """
    text = _strip_fences(response)
    if not text.startswith("["):
        start, end = text.find("["), text.rfind("]")
        if start == -1 or end <= start:
            raise ValueError("no JSON array in response")
        text = text[start : end + 1]
    parsed = json.loads(text)
    if not isinstance(parsed, list):
        raise ValueError("response is not a JSON array")
    return parsed


def coerce_hours(raw: Any) -> OperatingHours:
    """Validate an LLM ``hours`` mapping into :class:`OperatingHours`.

    Accepts full or abbreviated day names and 12-hour times; ``"closed"``
    (any case) marks a closed day; a ``null`` day is left unknown.

    Raises
    ------
    ValueError
        On any key or value that cannot be interpreted.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"hours must be an object, got {type(raw).__name__}")
    days: dict[str, DayHours | None] = {}
    for key, value in raw.items():
        day = canonical_day(str(key))
        if day is None:
            raise ValueError(f"unknown day {key!r}")
        if value is None:
            continue
        if isinstance(value, str):
            if value.strip().lower() != "closed":
                raise ValueError(f"unexpected value for {day}: {value!r}")
            days[day] = None
            continue
        if not isinstance(value, dict):
            raise ValueError(f"unexpected value for {day}: {value!r}")
        opens = normalize_time(str(value.get("open", "")))
        closes = normalize_time(str(value.get("close", "")))
        if not opens or not closes:
            raise ValueError(f"unparseable times for {day}: {value!r}")
        days[day] = DayHours(open=opens, close=closes)
    try:
        return OperatingHours(days=days)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


def parse_content_response(response: str) -> LLMOutcome:
    """Classify a tier-2 response as Resolved / NotFound / Malformed."""
    try:
        parsed = extract_json_object(response)
    except ValueError as exc:
        return Malformed(detail=f"invalid JSON: {exc}", raw=response[:500])

    found = parsed.get("found")
    if not isinstance(found, bool):
        return Malformed(detail="missing boolean 'found'", raw=response[:500])
    if not found:
        return NotFound(reason=str(parsed.get("reason", "model reported no hours")))

    try:
        hours = coerce_hours(parsed.get("hours"))
    except ValueError as exc:
        return Malformed(detail=f"invalid hours: {exc}", raw=response[:500])
    if hours.covered_days == 0:
        return NotFound(reason="found=true but no days given")
    return Resolved(hours=hours)


def parse_knowledge_response(response: str, batch_size: int) -> list[LLMOutcome]:
    """Classify a tier-3 batch response, one outcome per batch index.

    Items with an out-of-range or non-integer ``index`` are dropped; indices
    the model never mentioned become :class:`NotFound`.  If the whole
    response is unusable every index is :class:`Malformed`.
    """
    try:
        items = extract_json_array(response)
    except ValueError as exc:
        malformed = Malformed(detail=f"invalid JSON array: {exc}", raw=response[:500])
        return [malformed] * batch_size

    outcomes: list[LLMOutcome | None] = [None] * batch_size
    for item in items:
        if not isinstance(item, dict):
            continue
        index = item.get("index")
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < batch_size:
            logger.warning("knowledge_index_out_of_range", index=index, batch_size=batch_size)
            continue
        if outcomes[index] is not None:
            continue
        raw_hours = item.get("hours")
        if raw_hours is None:
            outcomes[index] = NotFound(reason="model does not know")
            continue
        try:
            hours = coerce_hours(raw_hours)
        except ValueError as exc:
            outcomes[index] = Malformed(detail=f"invalid hours: {exc}")
            continue
        outcomes[index] = Resolved(hours=hours) if hours.covered_days else NotFound(reason="empty hours")

    return [outcome or NotFound(reason="not returned by model") for outcome in outcomes]


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

class LLMHoursExtractor:
    """Builds tier-2/tier-3 prompts, calls the LLM, and parses the answers."""

    def __init__(
        self,
        llm_provider: ILLMProvider,
        llm_config: LLMConfig | None = None,
        tier2_config: Tier2Config | None = None,
        tier3_config: Tier3Config | None = None,
    ) -> None:
        self._llm = llm_provider
        self._llm_config = llm_config or LLMConfig()
        self._tier2 = tier2_config or Tier2Config()
        self._tier3 = tier3_config or Tier3Config()

    @property
    def provider_name(self) -> str:
        return self._llm.get_provider_name()

    async def _complete(self, system_prompt: str, user_prompt: str, timeout: float) -> str:
        try:
            return await asyncio.wait_for(
                self._llm.complete(
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    temperature=self._llm_config.temperature,
                    max_tokens=self._llm_config.max_tokens,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise LLMTimeoutError(
                message=f"no response within {timeout:.0f}s",
                provider_name=self._llm.get_provider_name(),
            ) from exc

    async def extract_from_content(self, venue_name: str, page_text: str) -> LLMOutcome:
        """Tier 2: ask the model to read hours out of the venue's own pages."""
        content = page_text[: self._tier2.max_content_chars]
        user_prompt = (
            f'Extract the regular operating/business hours for "{venue_name}" '
            f"from this website content:\n\n{content}"
        )
        response = await self._complete(_CONTENT_SYSTEM_PROMPT, user_prompt, self._tier2.timeout_seconds)
        outcome = parse_content_response(response)
        logger.debug("content_llm_outcome", venue=venue_name, outcome=outcome.kind)
        return outcome

    def build_knowledge_prompt(self, venues: Sequence[Venue]) -> str:
        venue_list = "\n".join(
            f"{index}. {venue.describe(self._tier3.default_location)}"
            for index, venue in enumerate(venues)
        )
        return _KNOWLEDGE_USER_TEMPLATE.format(venue_list=venue_list)

    async def extract_from_knowledge(self, venues: Sequence[Venue]) -> list[LLMOutcome]:
        """Tier 3: ask the model what it knows about a batch of venues.

        Returns one outcome per venue, aligned with *venues*.
        """
        if not venues:
            return []
        response = await self._complete(
            _KNOWLEDGE_SYSTEM_PROMPT,
            self.build_knowledge_prompt(venues),
            self._tier3.timeout_seconds,
        )
        outcomes = parse_knowledge_response(response, len(venues))
        logger.debug(
            "knowledge_llm_outcomes",
            batch_size=len(venues),
            resolved=sum(1 for outcome in outcomes if outcome.kind == "resolved"),
        )
        return outcomes
