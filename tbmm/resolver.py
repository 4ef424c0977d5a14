"""
Metadata resolver: turns debrid downloads into library items with catalog metadata
"""

import logging
import re
import time
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .models import (CachedStatus, DebridData, DebridDownload, ExternalIds,
                     MediaItem, MediaType, Settings)
from .release_parser import parse_release_name
from .rpdb import RPDBClient
from .tmdb import TMDBAPIError, create_tmdb_client

logger = logging.getLogger(__name__)

_QUERY_YEAR_RE = re.compile(r"\((\d{4})\)|\b(\d{4})\b")
_QUERY_YEAR_STRIP_RE = re.compile(r"\(?\d{4}\)?")

class MetadataResolver:
    """Resolves titles against TMDB, with RPDB posters when enabled"""

    def __init__(self, config: dict, settings: Optional[Settings] = None):
        settings = settings or Settings()
        self.tmdb = create_tmdb_client(config)
        self.rpdb = (
            RPDBClient(settings.rpdb_api_key, config)
            if settings.rpdb_enabled and settings.rpdb_api_key
            else None
        )

    def resolve_by_query(self, query: str, media_type: Optional[MediaType] = None) -> MediaItem:
        """Best catalog match for a free-text query, or a fallback item"""
        if not self.tmdb:
            return self._fallback_item(query, media_type)

        year_match = _QUERY_YEAR_RE.search(query)
        year = int(year_match.group(1) or year_match.group(2)) if year_match else None
        clean_query = _QUERY_YEAR_STRIP_RE.sub("", query, count=1).strip()

        try:
            if media_type == MediaType.MOVIE:
                results = self.tmdb.search_movie(clean_query, year)
            elif media_type in (MediaType.SHOW, MediaType.ANIME):
                results = self.tmdb.search_tv(clean_query, year)
            else:
                results = self.tmdb.search_multi(clean_query)
        except TMDBAPIError as e:
            logger.error(f"TMDB search error for {query}: {e}")
            return self._fallback_item(query, media_type)

        for result in results.get('results') or []:
            if result.get('media_type') == 'person':
                continue
            return self._to_media_item(result)

        logger.info(f"No TMDB match for: {query}")
        return self._fallback_item(query, media_type)

    def search(self, query: str, media_type: Optional[MediaType] = None, limit: int = 10) -> List[MediaItem]:
        """Catalog search results as items; TMDB errors propagate"""
        if not self.tmdb:
            return []
        if media_type == MediaType.MOVIE:
            results = self.tmdb.search_movie(query)
        elif media_type in (MediaType.SHOW, MediaType.ANIME):
            results = self.tmdb.search_tv(query)
        else:
            results = self.tmdb.search_multi(query)
        matches = [r for r in results.get('results') or [] if r.get('media_type') != 'person']
        return [self._to_media_item(result) for result in matches[:limit]]

    def resolve_by_imdb(self, imdb_id: str) -> Optional[MediaItem]:
        if not self.tmdb:
            return None
        try:
            results = self.tmdb.find_by_imdb(imdb_id)
        except TMDBAPIError as e:
            logger.error(f"TMDB find by IMDb error for {imdb_id}: {e}")
            return None

        for key in ('movie_results', 'tv_results'):
            matches = results.get(key) or []
            if matches:
                return self._to_media_item(dict(matches[0], imdb_id=imdb_id))
        return None

    def resolve_poster(self, external_ids: ExternalIds, default_poster: Optional[str] = None,
                       media_type: MediaType = MediaType.MOVIE) -> Optional[str]:
        """RPDB poster when enabled and available, otherwise the default"""
        if self.rpdb:
            if external_ids.imdb:
                poster = self.rpdb.get_poster_by_imdb(external_ids.imdb)
                if poster:
                    return poster
            if external_ids.tmdb:
                kind = 'movie' if media_type == MediaType.MOVIE else 'tv'
                poster = self.rpdb.get_poster_by_tmdb(external_ids.tmdb, kind)
                if poster:
                    return poster
        return default_poster

    def build_library(self, downloads: Iterable[DebridDownload], enrich: bool = True) -> List[MediaItem]:
        """One library item per download; a failed lookup never drops the download"""
        items: List[MediaItem] = []
        for download in downloads:
            try:
                item = self._resolve_download(download) if enrich else self._plain_item(download)
            except Exception as e:
                logger.error(f"Failed to resolve metadata for {download.name}: {e}")
                item = MediaItem(
                    id=f"torbox-{download.id}",
                    type=MediaType.OTHER,
                    title=download.name,
                )
            item.debrid = DebridData.from_download(download)
            item.cached_status = CachedStatus.CACHED
            items.append(item)

        logger.info(f"Resolved {len(items)} library items")
        return items

    def _resolve_download(self, download: DebridDownload) -> MediaItem:
        parsed = parse_release_name(download.name)
        query = f"{parsed.title} ({parsed.year})" if parsed.year else parsed.title
        media_type = MediaType.SHOW if parsed.season is not None else None

        item = self.resolve_by_query(query or download.name, media_type)
        if item.external_ids and item.poster_url:
            item.poster_url = self.resolve_poster(item.external_ids, item.poster_url, item.type)
        return item

    def _plain_item(self, download: DebridDownload) -> MediaItem:
        parsed = parse_release_name(download.name)
        return MediaItem(
            id=f"torbox-{download.id}",
            type=MediaType.SHOW if parsed.season is not None else MediaType.OTHER,
            title=parsed.title or download.name,
            year=parsed.year,
        )

    def _to_media_item(self, result: Dict[str, Any]) -> MediaItem:
        """Convert a TMDB movie or TV result into MediaItem"""
        is_movie = 'title' in result
        date = result.get('release_date') if is_movie else result.get('first_air_date')

        return MediaItem(
            id=f"tmdb-{result.get('id')}",
            type=MediaType.MOVIE if is_movie else MediaType.SHOW,
            title=result.get('title') if is_movie else result.get('name'),
            year=_year_from_date(date),
            overview=result.get('overview'),
            external_ids=ExternalIds(tmdb=result.get('id'), imdb=result.get('imdb_id')),
            poster_url=self.tmdb.get_poster_url(result.get('poster_path')),
            backdrop_url=self.tmdb.get_backdrop_url(result.get('backdrop_path')),
            cached_status=CachedStatus.UNKNOWN,
        )

    def _fallback_item(self, query: str, media_type: Optional[MediaType] = None) -> MediaItem:
        return MediaItem(
            id=f"fallback-{int(time.time() * 1000)}",
            type=media_type or MediaType.OTHER,
            title=query,
            cached_status=CachedStatus.UNKNOWN,
        )

def _year_from_date(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').year
    except ValueError:
        return None
