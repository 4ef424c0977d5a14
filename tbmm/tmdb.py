"""
TMDB API client for movie and TV show metadata
"""

import logging
import requests
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)

class TMDBAPIError(Exception):
    """TMDB request failed"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

class TMDBClient:
    """TMDB API client for searching titles and building image URLs"""

    def __init__(self, api_key: str, config: dict):
        if not api_key:
            raise ValueError("TMDB API key is required")
        self.api_key = api_key
        self.base_url = config['api']['tmdb_base_url'].rstrip('/')
        self.image_base = config['api']['tmdb_image_base'].rstrip('/')
        self.timeout = config['api']['timeout']

    def search_multi(self, query: str) -> Dict[str, Any]:
        """Search movies and TV shows at once"""
        logger.info(f"Searching TMDB: {query}")
        return self._request("/search/multi", {"query": query, "include_adult": "false"})

    def search_movie(self, query: str, year: Optional[int] = None) -> Dict[str, Any]:
        logger.info(f"Searching movie: {query} ({year})")
        params = {"query": query, "include_adult": "false"}
        if year:
            params["year"] = year
        return self._request("/search/movie", params)

    def search_tv(self, query: str, year: Optional[int] = None) -> Dict[str, Any]:
        logger.info(f"Searching TV show: {query} ({year})")
        params = {"query": query, "include_adult": "false"}
        if year:
            params["first_air_date_year"] = year
        return self._request("/search/tv", params)

    def get_movie(self, movie_id: int) -> Dict[str, Any]:
        return self._request(f"/movie/{movie_id}")

    def get_tv(self, tv_id: int) -> Dict[str, Any]:
        return self._request(f"/tv/{tv_id}")

    def find_by_imdb(self, imdb_id: str) -> Dict[str, Any]:
        """Look up movies and shows by IMDb id"""
        return self._request(f"/find/{imdb_id}", {"external_source": "imdb_id"})

    def get_poster_url(self, path: Optional[str], size: str = 'w500') -> Optional[str]:
        if not path:
            return None
        return f"{self.image_base}/{size}{path}"

    def get_backdrop_url(self, path: Optional[str], size: str = 'w1280') -> Optional[str]:
        if not path:
            return None
        return f"{self.image_base}/{size}{path}"

    def _request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        query = dict(params or {}, api_key=self.api_key)

        try:
            response = requests.get(url, params=query, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.error(f"TMDB request failed: {endpoint}: {e}")
            raise TMDBAPIError(f"TMDB API error: {e}", status) from e
        except (requests.RequestException, ValueError) as e:
            logger.error(f"TMDB request failed: {endpoint}: {e}")
            raise TMDBAPIError(f"TMDB API error: {e}") from e

def create_tmdb_client(config: dict) -> Optional[TMDBClient]:
    """TMDB client from config, or None when no API key is configured"""
    api_key = config['api'].get('tmdb_api_key')
    if not api_key:
        logger.debug("No TMDB API key configured, metadata lookups disabled")
        return None
    return TMDBClient(api_key, config)
