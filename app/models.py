from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Optional, Dict, Any

# --- Catalog ---

class EpisodeRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    series_id: str
    season: int
    episode: int
    episode_id: str
    title: str = ""


class StreamSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    info_hash: Optional[str] = None
    file_idx: int = 0

# --- TorBox ---

class RemoteFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: Optional[str] = None
    size: Optional[int] = None


class RemoteTorrent(BaseModel):
    """
    Read-only view of a torrent as TorBox reports it in `mylist`.
    """
    model_config = ConfigDict(frozen=True)

    id: int
    hash: str
    name: Optional[str] = None
    download_state: Optional[str] = None
    download_finished: bool = False
    files: List[RemoteFile] = []

    @field_validator("files", mode="before")
    @classmethod
    def _null_files(cls, value: Any) -> Any:
        return value or []

    @field_validator("download_finished", mode="before")
    @classmethod
    def _null_finished(cls, value: Any) -> Any:
        return bool(value)

    def matches(self, info_hash: str) -> bool:
        # TorBox echoes hashes in either case
        return self.hash.lower() == info_hash.lower()


class PendingSubmission(BaseModel):
    """
    `createtorrent` accepted the magnet but did not return the torrent record.
    """
    model_config = ConfigDict(frozen=True)

    hash: str
    torrent_id: Optional[int] = None
    detail: Optional[str] = None

# --- Stremio ---

class StreamDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    title: str
    url: str
    binge_group: str

    def to_stremio(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "url": self.url,
            "behaviorHints": {
                "bingeGroup": self.binge_group,
                "notWebReady": False,
            },
        }
