"""
Data models for the TorBox media manager
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from enum import Enum

class MediaType(Enum):
    MOVIE = "movie"
    SHOW = "show"
    ANIME = "anime"
    OTHER = "other"

class CachedStatus(Enum):
    CACHED = "cached"
    NOT_CACHED = "not_cached"
    PROCESSING = "processing"
    UNKNOWN = "unknown"

class DownloadKind(Enum):
    """Kinds of downloads the debrid service stores"""
    TORRENT = "torrent"
    USENET = "usenet"
    WEB = "webdownload"

    @property
    def prefix(self) -> str:
        """API path prefix"""
        return {"torrent": "torrents", "usenet": "usenet", "webdownload": "webdownload"}[self.value]

    @property
    def id_field(self) -> str:
        return f"{self.value}_id"

    @property
    def control_endpoint(self) -> str:
        return {
            "torrent": "/torrents/controltorrent",
            "usenet": "/usenet/controlusenetdownload",
            "webdownload": "/webdownload/controlwebdownload",
        }[self.value]

    @property
    def info_endpoint(self) -> str:
        return {
            "torrent": "/torrents/torrentinfo",
            "usenet": "/usenet/usenetinfo",
            "webdownload": "/webdownload/webdownloadinfo",
        }[self.value]

    @property
    def operations(self) -> Tuple[str, ...]:
        """Control operations the service accepts for this kind"""
        if self is DownloadKind.TORRENT:
            return ("Pause", "Resume", "Delete", "Reannounce", "Recheck")
        return ("Pause", "Resume", "Delete")

def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from the API, assuming UTC when no offset is given"""
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

@dataclass(frozen=True)
class ParsedRelease:
    """Attributes extracted from a release name"""
    title: str
    year: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    resolution: Optional[str] = None
    quality: Optional[str] = None
    is_complete: bool = False

@dataclass
class ExternalIds:
    imdb: Optional[str] = None
    tmdb: Optional[int] = None
    tvdb: Optional[int] = None

@dataclass
class DebridFile:
    """File inside a debrid download"""
    id: int
    name: str
    size: int = 0
    path: Optional[str] = None

@dataclass
class DebridDownload:
    """Download as listed by the debrid service"""
    id: int
    kind: DownloadKind
    name: str
    size: int = 0
    progress: float = 0.0
    download_state: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    hash: Optional[str] = None
    download_speed: int = 0
    eta: int = 0
    files: List[DebridFile] = field(default_factory=list)

@dataclass
class DebridData:
    """Debrid-side facet of a library item"""
    id: int
    name: str
    kind: DownloadKind = DownloadKind.TORRENT
    added_at: Optional[datetime] = None
    size: int = 0
    hash: Optional[str] = None
    status: Optional[str] = None
    progress: Optional[float] = None
    files: List[DebridFile] = field(default_factory=list)

    @property
    def added_timestamp(self) -> float:
        return self.added_at.timestamp() if self.added_at else 0.0

    @classmethod
    def from_download(cls, download: DebridDownload) -> "DebridData":
        return cls(
            id=download.id,
            name=download.name,
            kind=download.kind,
            added_at=download.created_at,
            size=download.size,
            hash=download.hash,
            status=download.download_state,
            progress=download.progress,
            files=list(download.files),
        )

@dataclass
class MediaItem:
    """Library entry: catalog metadata plus the debrid download it came from"""
    id: str
    type: MediaType
    title: str
    year: Optional[int] = None
    overview: Optional[str] = None
    external_ids: Optional[ExternalIds] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    cached_status: CachedStatus = CachedStatus.UNKNOWN
    debrid: Optional[DebridData] = None

    @property
    def display_name(self) -> str:
        if self.debrid and self.debrid.name:
            return self.debrid.name
        return self.title

    @property
    def added_timestamp(self) -> float:
        return self.debrid.added_timestamp if self.debrid else 0.0

@dataclass
class MediaGroup:
    """Releases believed to be the same title, built during one grouping pass"""
    key: str
    title: str
    type: MediaType
    year: Optional[int] = None
    season: Optional[int] = None
    poster_url: Optional[str] = None
    items: List[MediaItem] = field(default_factory=list)

    @property
    def latest_added(self) -> float:
        return max((item.added_timestamp for item in self.items), default=0.0)

@dataclass
class Settings:
    """User preferences persisted between runs"""
    rpdb_enabled: bool = False
    rpdb_api_key: str = ""
    show_badges: bool = True
    grouped_view: bool = True
