"""Text normalization and content fingerprinting for venue web pages.

Two concerns live here because they must never drift apart:

1. **Noise stripping** -- Venue sites re-render constantly: "today's" dates,
   cache-busting timestamps, analytics ids, cookie banners and hours tables
   that start on the current weekday.  :func:`normalize_text` removes that
   churn so only real content edits survive.

2. **Fingerprinting** -- :func:`fingerprint` hashes the normalized text of a
   snapshot's pages (in page order, joined with ``\\n``) into a 128-bit MD5
   hex digest.  The digest is always recomputed from text; hashes stored by
   older writers are never trusted.

Any change to the patterns below changes every fingerprint, which makes the
next run classify every venue as changed.  Treat edits here as a migration.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable
from urllib.parse import urlsplit, urlunsplit

PAGE_SEPARATOR = "\n"

_MONTHS = (
    r"Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec|January|February|March|"
    r"April|May|June|July|August|September|October|November|December"
)
_WEEKDAYS = r"Monday|Tuesday|Wednesday|Thursday|Friday|Saturday|Sunday|Mon|Tue|Wed|Thu|Fri|Sat|Sun"

_DOW_ORDER = {
    "mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6,
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
}

_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7E\n\r\t]")
_ISO_TIMESTAMP_RE = re.compile(r"\d{4}-\d{2}-\d{2}(T\d{2}:\d{2}:\d{2}(\.\d{3})?Z?)?")
_WEEKDAY_MONTH_DAY_RE = re.compile(
    rf"\b({_WEEKDAYS})\s+({_MONTHS})\s+\d{{1,2}}(st|nd|rd|th)?(,\s+\d{{4}})?\b",
    re.IGNORECASE,
)
_MONTH_DAY_RE = re.compile(
    rf"\b({_MONTHS})\s+\d{{1,2}}(st|nd|rd|th)?(,\s+\d{{4}})?\b",
    re.IGNORECASE,
)
_HOURS_BLOCK_RE = re.compile(
    rf"\b({_WEEKDAYS})[:\s]+\d{{1,2}}(?::\d{{2}})?\s*(?:AM|PM|am|pm)\s*[-–—to]+\s*"
    r"\d{1,2}(?::\d{2})?\s*(?:AM|PM|am|pm)",
    re.IGNORECASE,
)
_LEADING_WEEKDAY_RE = re.compile(rf"^({_WEEKDAYS})", re.IGNORECASE)
_LOADING_RE = re.compile(r"Loading\s+product\s+options\.\.\.|Loading\.\.\.", re.IGNORECASE)

# Analytics ids and tracking parameters.
_GTM_ID_RE = re.compile(r"gtm-[a-z0-9]+", re.IGNORECASE)
_UA_ID_RE = re.compile(r"UA-\d+-\d+")
_GA4_ID_RE = re.compile(r"G-[A-Z0-9]+")
_TRACKING_PARAM_RE = re.compile(
    r"[?&](sid|fbclid|utm_[^=\s&]+|gclid|_ga|_gid|ref|source|tracking|campaign|matchtype|"
    r"gad_source|gad_campaignid|gbraid|gclsrc|dclid|msclkid|li_fat_id|mc_[^=\s&]+|hsa_[^=\s&]+)"
    r"=[^\s&\"'\]]+",
    re.IGNORECASE,
)
_DANGLING_QUERY_RE = re.compile(r"\?(&|$)")
_LARGE_COUNT_RE = re.compile(r"\(\d{3,}\)")

# Site chrome: social links, consent banners, navigation, footers.
_BOILERPLATE_RES = [
    re.compile(
        r"\b(Facebook|Instagram|Twitter|TikTok|YouTube|Pinterest|LinkedIn|Yelp|Google)\s+(page|icon|link)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\bFollow us on\b.*?(?=\.|$)", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bFind us on\b.*?(?=\.|$)", re.IGNORECASE | re.MULTILINE),
    re.compile(r"This site is protected by reCAPTCHA and the Google[^.]*\.", re.IGNORECASE),
    re.compile(r"Privacy\s+Policy\s+Terms\s+of\s+Service", re.IGNORECASE),
    re.compile(r"We use cookies[^.]*\.", re.IGNORECASE),
    re.compile(r"Accept\s+(All\s+)?Cookies", re.IGNORECASE),
    re.compile(r"Cookie\s+(Policy|Settings|Preferences)", re.IGNORECASE),
    re.compile(
        r"\b(Skip to (main )?content|Return to Nav|Back to top|Close\s+(menu|modal|dialog)?)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\bOrder\s+(Now|Online)\b", re.IGNORECASE),
    re.compile(r"\bNo description added\.?", re.IGNORECASE),
    re.compile(r"Copyright\s+©\s+\d{4}", re.IGNORECASE),
    re.compile(r"All\s+rights\s+reserved", re.IGNORECASE),
    re.compile(r"Powered\s+by\s+[^\s]+", re.IGNORECASE),
    re.compile(r"©\s+\d{4}\s+[^\n]+", re.IGNORECASE),
]

_SESSION_TOKEN_RE = re.compile(r"\b(session|sid|token|tracking)[-_]?[a-z0-9]{8,}\b", re.IGNORECASE)
_STANDALONE_YEAR_RE = re.compile(r"\b20[2-3]\d\b")
_WHITESPACE_RE = re.compile(r"\s+")


def _looks_binary(text: str) -> bool:
    if len(text) <= 100:
        return False
    return len(_NON_PRINTABLE_RE.findall(text)) / len(text) > 0.3


def _weekday_rank(block: str) -> int:
    match = _LEADING_WEEKDAY_RE.match(block)
    if not match:
        return 99
    return _DOW_ORDER.get(match.group(1).lower(), 99)


def _canonicalize_hours_table(text: str) -> str:
    """Reorder weekday hour entries Mon->Sun.

    Many venues render their hours table starting from *today*, so the same
    table rotates daily.  Only tables with three or more entries are touched;
    each original entry is replaced positionally by its sorted counterpart.
    """
    blocks = [m.group(0) for m in _HOURS_BLOCK_RE.finditer(text)]
    if len(blocks) < 3:
        return text
    ordered = iter(sorted(blocks, key=_weekday_rank))
    return _HOURS_BLOCK_RE.sub(lambda _m: next(ordered, ""), text)


def normalize_text(text: str | None) -> str:
    """Strip volatile noise from page text so equal content compares equal.

    Removes date/timestamp tokens, loading placeholders, analytics ids,
    tracking parameters, consent and navigation chrome, copyright footers and
    session tokens; canonicalises rotating hours tables; collapses whitespace
    and trims.  Text that looks binary normalizes to the empty string.

    Args:
        text: Raw page text (may be ``None``).

    Returns:
        The normalized text.  Deterministic for a given input.
    """
    if not text or not isinstance(text, str):
        return ""
    if _looks_binary(text):
        return ""

    normalized = _ISO_TIMESTAMP_RE.sub("", text)
    normalized = _WEEKDAY_MONTH_DAY_RE.sub("", normalized)
    normalized = _MONTH_DAY_RE.sub("", normalized)
    normalized = _canonicalize_hours_table(normalized)
    normalized = _LOADING_RE.sub("", normalized)

    normalized = _GTM_ID_RE.sub("", normalized)
    normalized = _UA_ID_RE.sub("", normalized)
    normalized = _GA4_ID_RE.sub("", normalized)
    normalized = _TRACKING_PARAM_RE.sub("", normalized)
    normalized = _DANGLING_QUERY_RE.sub("", normalized)
    normalized = _LARGE_COUNT_RE.sub("", normalized)

    for pattern in _BOILERPLATE_RES:
        normalized = pattern.sub("", normalized)

    normalized = _SESSION_TOKEN_RE.sub("", normalized)
    normalized = _STANDALONE_YEAR_RE.sub("", normalized)

    return _WHITESPACE_RE.sub(" ", normalized).strip()


def fingerprint(texts: Iterable[str]) -> str:
    """Return the 128-bit content fingerprint of a snapshot's page texts.

    Each text is normalized independently, then the results are joined in
    the given order with :data:`PAGE_SEPARATOR` and hashed with MD5.  Page
    order is significant; an empty page list hashes the empty string.

    Args:
        texts: Page texts in snapshot order.

    Returns:
        32-character lowercase hex digest.
    """
    joined = PAGE_SEPARATOR.join(normalize_text(text) for text in texts)
    return hashlib.md5(joined.encode("utf-8")).hexdigest()  # noqa: S324 -- change detection, not security


def normalize_url(url: str | None) -> str:
    """Reduce a page URL to its identity across runs.

    The fragment and tracking parameters (``utm_*``, ``fbclid``, ``gclid``...)
    are dropped so link decorations don't create phantom pages.  Any other
    query parameter, such as ``?page_id=42``, selects a different page and
    is kept in its original order.
    """
    if not url:
        return ""
    parts = urlsplit(url)
    query = _TRACKING_PARAM_RE.sub("", f"?{parts.query}").lstrip("?&") if parts.query else ""
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))
