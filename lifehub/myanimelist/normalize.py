"""
Normalization of MyAnimeList API payloads.

The history endpoint nests the anime under different field names depending
on the response variant, and names the episode/date fields differently too.
Each lookup tries an explicit, ordered list of field names.
"""

import logging
import math
from datetime import UTC, datetime
from typing import Any, Iterable, Mapping

from lifehub.core.domain import CatalogItem, HistoryItem


logger = logging.getLogger(__name__)

HISTORY_NODE_FIELDS = ("node", "anime", "entry")
HISTORY_EPISODE_FIELDS = ("episode", "increment", "episodes_watched")
HISTORY_DATE_FIELDS = ("date", "updated_at", "watching_date")
SEASONAL_LIST_FIELDS = ("data", "anime")
PICTURE_SIZES = ("medium", "large")


def first_present(record: Mapping[str, Any], fields: Iterable[str]) -> Any:
    """Value of the first field that is present and truthy, else None."""
    for name in fields:
        value = record.get(name)
        if value:
            return value
    return None


def parse_id(value: Any) -> int | None:
    """Numeric id, or None for anything that is not a finite number."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(number)


def parse_episode(value: Any) -> int:
    """Episode number; missing or non-positive values count as episode 1."""
    episode = parse_id(value)
    if episode is None or episode <= 0:
        return 1
    return episode


def parse_timestamp(value: Any, now: datetime) -> datetime:
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return now
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed.astimezone(UTC)
    return now


def parse_picture(value: Any) -> str | None:
    """MAL sends main_picture as {"medium", "large"}; older caches hold a URL."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, Mapping):
        for size in PICTURE_SIZES:
            url = value.get(size)
            if isinstance(url, str) and url:
                return url
    return None


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def normalize_history(payload: Any, now: datetime) -> list[HistoryItem]:
    """
    Flatten a ``/users/{name}/history`` response.

    Malformed entries are skipped, never fatal.

    Args:
        payload: Decoded JSON body
        now: Fallback timestamp for entries without a date

    Returns:
        Normalized history items in upstream order
    """
    entries = _as_list(payload.get("history")) if isinstance(payload, Mapping) else []
    items: list[HistoryItem] = []
    skipped = 0

    for entry in entries:
        if not isinstance(entry, Mapping):
            skipped += 1
            continue
        node = first_present(entry, HISTORY_NODE_FIELDS)
        if not isinstance(node, Mapping):
            skipped += 1
            continue
        mal_id = parse_id(node.get("id"))
        if mal_id is None:
            skipped += 1
            continue

        title = node.get("title")
        items.append(
            HistoryItem(
                mal_id=mal_id,
                episode=parse_episode(first_present(entry, HISTORY_EPISODE_FIELDS)),
                watched_at=parse_timestamp(
                    first_present(entry, HISTORY_DATE_FIELDS), now
                ),
                title=title if isinstance(title, str) else None,
            )
        )

    if skipped:
        logger.info(f"Skipped {skipped} malformed history entries")
    return items


def normalize_seasonal(payload: Any, now: datetime) -> list[CatalogItem]:
    """Flatten a ``/anime/season/{year}/{season}`` response into catalog items."""
    entries: list[Any] = []
    if isinstance(payload, Mapping):
        entries = _as_list(first_present(payload, SEASONAL_LIST_FIELDS))

    items: list[CatalogItem] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        node = entry.get("node")
        if not isinstance(node, Mapping):
            node = entry
        mal_id = parse_id(node.get("id"))
        if mal_id is None:
            continue
        title = node.get("title")
        items.append(
            CatalogItem(
                mal_id=mal_id,
                title=title if isinstance(title, str) else None,
                main_picture=parse_picture(node.get("main_picture")),
                updated_at=now,
            )
        )
    return items


def season_for(moment: datetime) -> tuple[int, str]:
    """(year, season) for a UTC moment."""
    month = moment.astimezone(UTC).month
    if month <= 3:
        season = "winter"
    elif month <= 6:
        season = "spring"
    elif month <= 9:
        season = "summer"
    else:
        season = "fall"
    return moment.astimezone(UTC).year, season
