"""
RPDB (RatingPosterDB) client for enhanced posters
"""

import logging
import requests
from typing import Optional

logger = logging.getLogger(__name__)

class RPDBClient:
    """Checks whether RPDB has a poster for a title and returns its URL"""

    def __init__(self, api_key: str, config: dict):
        self.api_key = api_key
        self.base_url = config['api']['rpdb_base_url'].rstrip('/')
        self.timeout = config['api']['timeout']

    def get_poster_by_imdb(self, imdb_id: str) -> Optional[str]:
        return self._existing(f"{self.base_url}/{self.api_key}/imdb/poster-default/{imdb_id}.jpg")

    def get_poster_by_tmdb(self, tmdb_id: int, media_type: str = 'movie') -> Optional[str]:
        kind = 'movie' if media_type == 'movie' else 'show'
        return self._existing(f"{self.base_url}/{self.api_key}/tmdb/poster-default/{kind}-{tmdb_id}.jpg")

    def _existing(self, url: str) -> Optional[str]:
        """URL if a HEAD request for it succeeds, else None"""
        try:
            response = requests.head(url, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as e:
            logger.debug(f"RPDB poster check failed: {e}")
            return None
        if response.ok:
            return url
        logger.debug(f"No RPDB poster ({response.status_code})")
        return None
