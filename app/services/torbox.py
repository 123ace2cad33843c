import httpx
from loguru import logger
from typing import Optional, Dict, Any, List, Union
from pydantic import ValidationError
from app.core.config import settings
from app.core.errors import ConfigError, UpstreamError
from app.models import RemoteTorrent, PendingSubmission
from app.services.base import DebridClient
from app.utils.magnet import build_magnet

class TorBoxService(DebridClient):
    """
    Client for TorBox.app API.
    Only three endpoints are used: mylist, createtorrent and requestdl.
    """
    def __init__(self, api_key: Optional[str] = None, base_url: str = "https://api.torbox.app/v1", timeout: float = 20.0):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(timeout=timeout)

    def _get_headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ConfigError("No TorBox API Key configured")
        return {"Authorization": f"Bearer {self.api_key}"}

    def _payload(self, resp: httpx.Response, action: str) -> Dict[str, Any]:
        """
        Unwrap TorBox's {"success": ..., "data": ...} envelope.
        """
        if not resp.is_success:
            raise UpstreamError(f"TorBox {action} failed", resp.status_code, resp.text)
        try:
            data = resp.json()
        except ValueError:
            raise UpstreamError(f"TorBox {action} returned invalid JSON", resp.status_code, resp.text)

        if not isinstance(data, dict) or not data.get("success"):
            raise UpstreamError(f"TorBox {action} error", resp.status_code, resp.text)
        return data

    async def list_torrents(self) -> List[RemoteTorrent]:
        headers = self._get_headers()

        resp = await self.client.get(f"{self.base_url}/api/torrents/mylist", params={"bypass_cache": "true"}, headers=headers)
        data = self._payload(resp, "mylist")

        torrents = []
        for item in data.get("data") or []:
            try:
                torrents.append(RemoteTorrent.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed TorBox torrent entry {item.get('id') if isinstance(item, dict) else item}: {e}")
        logger.debug(f"TorBox mylist returned {len(torrents)} torrents")
        return torrents

    async def submit_torrent(self, info_hash: str) -> Union[RemoteTorrent, PendingSubmission]:
        headers = self._get_headers()

        add_payload = {
            "magnet": build_magnet(info_hash),
            "seed": "1",
            "allow_zip": "false"
        }

        logger.info(f"Adding torrent to TorBox: {info_hash}")
        # Use data= for form-encoded
        resp = await self.client.post(f"{self.base_url}/api/torrents/createtorrent", data=add_payload, headers=headers)
        data = self._payload(resp, "createtorrent")
        logger.info(f"TorBox Create Response: {data.get('detail')}")

        torrent_info = data.get("data")
        if not isinstance(torrent_info, dict):
            torrent_info = {}

        # Sometimes the full record comes back inline
        if "download_state" in torrent_info or "files" in torrent_info:
            record = dict(torrent_info)
            record.setdefault("id", record.get("torrent_id"))
            record.setdefault("hash", info_hash)
            try:
                return RemoteTorrent.model_validate(record)
            except ValidationError as e:
                logger.warning(f"Inline TorBox record unusable, falling back to reconcile: {e}")

        return PendingSubmission(
            hash=torrent_info.get("hash") or info_hash,
            torrent_id=torrent_info.get("torrent_id") or torrent_info.get("id"),
            detail=data.get("detail"),
        )

    async def request_download_url(self, torrent_id: int, file_id: int) -> str:
        headers = self._get_headers()

        link_payload = {
            "token": self.api_key,
            "torrent_id": int(torrent_id),
            "file_id": int(file_id),
            "zip_link": "false"
        }

        logger.info(f"Requesting DL for torrent {torrent_id}, file {file_id}")
        resp = await self.client.get(f"{self.base_url}/api/torrents/requestdl", params=link_payload, headers=headers)
        data = self._payload(resp, "requestdl")

        url = data.get("data")
        if not url:
            raise UpstreamError("TorBox requestdl returned no URL", resp.status_code, resp.text)
        return url

    async def aclose(self) -> None:
        await self.client.aclose()

torbox_service = TorBoxService(
    api_key=settings.TORBOX_API_KEY,
    base_url=settings.TORBOX_API_URL,
    timeout=settings.TORBOX_TIMEOUT,
)
