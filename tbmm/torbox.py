"""
TorBox API client for the user's torrents, usenet and web downloads
"""

import logging
import os
import requests
from typing import Any, Dict, Iterable, List, Optional

from .models import DebridDownload, DebridFile, DownloadKind, parse_timestamp

logger = logging.getLogger(__name__)

class TorBoxAPIError(Exception):
    """Error response or transport failure talking to TorBox"""

    def __init__(self, message: str, status: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.status = status
        self.detail = detail

class TorBoxClient:
    """Thin wrapper over the TorBox REST API"""

    def __init__(self, api_key: str, config: dict):
        if not api_key:
            raise ValueError("TorBox API key is required")
        self.api_key = api_key
        self.base_url = config['api']['torbox_base_url'].rstrip('/')
        self.timeout = config['api']['timeout']

    def _request(self, method: str, endpoint: str, params: Optional[Dict[str, Any]] = None,
                 data: Any = None, files: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        logger.debug(f"{method} {url} params={params}")

        try:
            if files is not None:
                # requests sets the multipart boundary itself
                response = requests.request(method, url, headers=headers, params=params,
                                            files=files, timeout=self.timeout)
            else:
                response = requests.request(method, url, headers=headers, params=params,
                                            json=data, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"TorBox request failed: {method} {endpoint}: {e}")
            raise TorBoxAPIError(str(e)) from e

        if not response.ok:
            try:
                detail = response.json()
            except ValueError:
                detail = response.text
            logger.error(f"TorBox API error {response.status_code} for {endpoint}: {detail}")
            raise TorBoxAPIError(f"TorBox API error: {response.reason}", response.status_code, detail)

        if 'application/json' in response.headers.get('Content-Type', ''):
            return response.json()
        return {}

    def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("GET", endpoint, params=params)

    def _post(self, endpoint: str, data: Any = None, files: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("POST", endpoint, data=data, files=files)

    # User / account

    def get_user(self) -> Dict[str, Any]:
        return self._get("/user/me").get('data') or {}

    def get_account_stats(self) -> Dict[str, Any]:
        return self._get("/user/stats").get('data') or {}

    def get_user_settings(self) -> Dict[str, Any]:
        return self._get("/user/settings").get('data') or {}

    def update_user_settings(self, **settings) -> Dict[str, Any]:
        return self._post("/user/updatesettings", settings)

    # Listing

    def get_downloads(self, kind: DownloadKind) -> List[DebridDownload]:
        """List the user's downloads of one kind"""
        data = self._get(f"/{kind.prefix}/mylist").get('data') or []
        downloads = [self._parse_download(kind, entry) for entry in data]
        logger.info(f"Fetched {len(downloads)} {kind.value} downloads")
        return downloads

    def get_torrents(self) -> List[DebridDownload]:
        return self.get_downloads(DownloadKind.TORRENT)

    def get_usenet_downloads(self) -> List[DebridDownload]:
        return self.get_downloads(DownloadKind.USENET)

    def get_web_downloads(self) -> List[DebridDownload]:
        return self.get_downloads(DownloadKind.WEB)

    def get_all_downloads(self) -> List[DebridDownload]:
        downloads: List[DebridDownload] = []
        for kind in DownloadKind:
            downloads.extend(self.get_downloads(kind))
        return downloads

    def get_download_info(self, kind: DownloadKind, download_id: int) -> Optional[DebridDownload]:
        data = self._get(kind.info_endpoint, {"id": download_id}).get('data')
        return self._parse_download(kind, data) if data else None

    def get_torrent_files(self, torrent_id: int) -> List[DebridFile]:
        data = self._get("/torrents/getfiles", {"id": torrent_id}).get('data') or []
        return [self._parse_file(entry) for entry in data]

    def check_cached(self, hashes: Iterable[str]) -> List[Dict[str, Any]]:
        """Which of the given info hashes the service already has cached"""
        response = self._get("/torrents/checkcached", {"hash": ",".join(hashes)})
        data = response.get('data') or []
        if isinstance(data, dict):
            # some API versions key the entries by hash
            return [dict(entry, hash=key) for key, entry in data.items()]
        return data

    def search_torrents(self, query: str, category: Optional[str] = None,
                        limit: Optional[int] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"query": query}
        if category:
            params["category"] = category
        if limit:
            params["limit"] = limit
        return self._get("/torrents/search", params).get('data') or []

    # Adding

    def add_magnet(self, magnet: str) -> Dict[str, Any]:
        logger.info(f"Adding magnet: {magnet[:60]}")
        return self._post("/torrents/addmagnet", {"magnet": magnet})

    def add_torrent_file(self, path: str) -> Dict[str, Any]:
        logger.info(f"Uploading torrent file: {path}")
        with open(path, 'rb') as fh:
            return self._post("/torrents/addtorrentfile", files={"file": (os.path.basename(path), fh)})

    def create_usenet_download(self, link: str) -> Dict[str, Any]:
        return self._post("/usenet/createusenetdownload", {"link": link})

    def create_web_download(self, link: str) -> Dict[str, Any]:
        return self._post("/webdownload/createwebdownload", {"link": link})

    # Control

    def control(self, kind: DownloadKind, download_id: int, operation: str) -> Dict[str, Any]:
        """Run a control operation (Pause, Resume, Delete, ...) on a download"""
        if operation not in kind.operations:
            raise ValueError(f"Operation {operation!r} is not supported for {kind.value} downloads")
        logger.info(f"{operation} {kind.value} {download_id}")
        return self._post(kind.control_endpoint, {kind.id_field: download_id, "operation": operation})

    def delete(self, kind: DownloadKind, download_id: int) -> Dict[str, Any]:
        return self.control(kind, download_id, "Delete")

    def pause(self, kind: DownloadKind, download_id: int) -> Dict[str, Any]:
        return self.control(kind, download_id, "Pause")

    def resume(self, kind: DownloadKind, download_id: int) -> Dict[str, Any]:
        return self.control(kind, download_id, "Resume")

    def reannounce_torrent(self, torrent_id: int) -> Dict[str, Any]:
        return self.control(DownloadKind.TORRENT, torrent_id, "Reannounce")

    def recheck_torrent(self, torrent_id: int) -> Dict[str, Any]:
        return self.control(DownloadKind.TORRENT, torrent_id, "Recheck")

    def bulk_delete(self, kind: DownloadKind, download_ids: Iterable[int]) -> Dict[str, Any]:
        return self._post(f"/{kind.prefix}/bulkdelete", {f"{kind.id_field}s": list(download_ids)})

    # Links

    def request_download_link(self, kind: DownloadKind, download_id: int,
                              file_id: Optional[int] = None, zip_link: bool = False) -> str:
        params: Dict[str, Any] = {kind.id_field: download_id}
        if file_id is not None:
            params["file_id"] = file_id
        if zip_link:
            params["zip_link"] = "true"
        return self._get(f"/{kind.prefix}/requestdl", params).get('data') or ""

    def request_stream_link(self, kind: DownloadKind, download_id: int,
                            file_id: Optional[int] = None) -> str:
        params: Dict[str, Any] = {kind.id_field: download_id}
        if file_id is not None:
            params["file_id"] = file_id
        return self._get(f"/{kind.prefix}/requeststream", params).get('data') or ""

    def _parse_download(self, kind: DownloadKind, data: Dict[str, Any]) -> DebridDownload:
        """Parse a mylist/info entry into DebridDownload"""
        return DebridDownload(
            id=data.get('id'),
            kind=kind,
            name=data.get('name') or "",
            size=data.get('size') or 0,
            progress=data.get('progress') or 0.0,
            download_state=data.get('download_state') or "",
            created_at=parse_timestamp(data.get('created_at')),
            updated_at=parse_timestamp(data.get('updated_at')),
            hash=data.get('hash'),
            download_speed=data.get('download_speed') or 0,
            eta=data.get('eta') or 0,
            files=[self._parse_file(entry) for entry in data.get('files') or []],
        )

    def _parse_file(self, data: Dict[str, Any]) -> DebridFile:
        return DebridFile(
            id=data.get('id'),
            name=data.get('name') or data.get('short_name') or "",
            size=data.get('size') or 0,
            path=data.get('path'),
        )
