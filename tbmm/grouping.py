"""
Grouping of library items that are releases of the same title
"""

import logging
import re
from typing import Dict, Iterable, List

from .models import MediaGroup, MediaItem, MediaType, ParsedRelease
from .release_parser import parse_release_name

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[\W_]+")

SORT_KEYS = ("added", "title", "size")


def get_group_key(parsed: ParsedRelease) -> str:
    """Equivalence key: normalized title plus year, else season"""
    base = _NON_ALNUM_RE.sub("", parsed.title.lower())
    if parsed.year is not None:
        return f"{base}-{parsed.year}"
    if parsed.season is not None:
        return f"{base}-s{parsed.season}"
    return base


def _merge_item(groups: Dict[str, MediaGroup], item: MediaItem) -> Dict[str, MediaGroup]:
    parsed = parse_release_name(item.display_name)
    key = get_group_key(parsed)

    group = groups.get(key)
    if group is None:
        group = MediaGroup(
            key=key,
            title=parsed.title or item.title,
            type=item.type,
            year=parsed.year or item.year,
            season=parsed.season,
            poster_url=item.poster_url,
        )
        groups[key] = group

    # first poster wins
    if item.poster_url and not group.poster_url:
        group.poster_url = item.poster_url

    group.items.append(item)
    return groups


def group_items(items: Iterable[MediaItem]) -> List[MediaGroup]:
    """Group items by release key, most recently added group first"""
    groups: Dict[str, MediaGroup] = {}
    count = 0
    for item in items:
        groups = _merge_item(groups, item)
        count += 1

    # sorted() is stable, so equal timestamps keep encounter order
    ordered = sorted(groups.values(), key=lambda group: group.latest_added, reverse=True)
    logger.debug(f"Grouped {count} items into {len(ordered)} groups")
    return ordered


def quality_badge(parsed: ParsedRelease) -> str:
    return " • ".join(part for part in (parsed.resolution, parsed.quality) if part)


def filter_items(items: Iterable[MediaItem], media_type: str = "all", query: str = "") -> List[MediaItem]:
    """Keep items of the given type whose title contains the query"""
    needle = query.lower()
    result = []
    for item in items:
        if media_type != "all" and item.type != MediaType(media_type):
            continue
        if needle and needle not in item.title.lower():
            continue
        result.append(item)
    return result


def sort_items(items: Iterable[MediaItem], sort_by: str = "added") -> List[MediaItem]:
    if sort_by == "title":
        return sorted(items, key=lambda item: item.title.lower())
    if sort_by == "size":
        return sorted(items, key=lambda item: item.debrid.size if item.debrid else 0, reverse=True)
    return sorted(items, key=lambda item: item.added_timestamp, reverse=True)
