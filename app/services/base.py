from abc import ABC, abstractmethod
from typing import List, Union
from app.models import RemoteTorrent, PendingSubmission

class DebridClient(ABC):
    """
    Abstract Base Class for debrid torrent caches (TorBox).
    Implementations raise ConfigError when no credential is set and
    UpstreamError when the service reports a failure.
    """

    @abstractmethod
    async def list_torrents(self) -> List[RemoteTorrent]:
        """
        Every torrent registered on the account.
        """
        pass

    @abstractmethod
    async def submit_torrent(self, info_hash: str) -> Union[RemoteTorrent, PendingSubmission]:
        """
        Register a torrent by magnet. Returns the created record when the
        service sends it back, otherwise only the acknowledgement.
        """
        pass

    @abstractmethod
    async def request_download_url(self, torrent_id: int, file_id: int) -> str:
        """
        Exchange a ready torrent and file id for a direct playback URL.
        """
        pass

    async def aclose(self) -> None:
        pass
