import json
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple
from loguru import logger
from app.core.config import settings
from app.core.errors import NotFoundError
from app.models import EpisodeRef, StreamSource

DEFAULT_CATALOG_FILE = Path(__file__).parent / "data" / "onepace.json"


class EpisodeRepository(ABC):
    """
    Read-only mapping from episode identifiers to playable sources.
    """

    stream_name: str = "TorBox"
    binge_group: str = ""

    @abstractmethod
    def resolve(self, stream_id: str) -> EpisodeRef:
        """
        Accepts `<series>:<season>:<episode>` or a bare episode code.
        Raises NotFoundError for anything else.
        """
        pass

    @abstractmethod
    def sources_for(self, episode: EpisodeRef) -> List[StreamSource]:
        pass


class StaticEpisodeRepository(EpisodeRepository):
    """
    Repository backed by a versioned JSON document (see data/onepace.json).
    """

    def __init__(self, document: Dict[str, Any]):
        self.version = document.get("version", 1)
        self._manifest = document["manifest"]
        self._catalog = document["catalog"]
        self._series = document["series"]
        self.series_id = self._series["id"]

        stream = document.get("stream") or {}
        self.stream_name = stream.get("name", self.stream_name)
        self.binge_group = stream.get("binge_group", self.series_id)

        self._by_code: Dict[str, EpisodeRef] = {}
        self._by_number: Dict[Tuple[int, int], EpisodeRef] = {}
        self._sources: Dict[str, List[StreamSource]] = {}

        for entry in document.get("episodes", []):
            ref = EpisodeRef(
                series_id=self.series_id,
                season=int(entry["season"]),
                episode=int(entry["episode"]),
                episode_id=entry["id"],
                title=entry.get("title", ""),
            )
            number = (ref.season, ref.episode)
            if ref.episode_id in self._by_code or number in self._by_number:
                raise ValueError(f"Duplicate episode in catalog: {ref.episode_id} S{ref.season}E{ref.episode}")

            self._by_code[ref.episode_id] = ref
            self._by_number[number] = ref
            self._sources[ref.episode_id] = [
                StreamSource(info_hash=s.get("infoHash"), file_idx=int(s.get("fileIdx", 0)))
                for s in entry.get("streams", [])
            ]

    @classmethod
    def from_file(cls, path: Path) -> "StaticEpisodeRepository":
        logger.info(f"Loading episode catalog from {path}")
        with open(path, encoding="utf-8") as fh:
            return cls(json.load(fh))

    # --- Lookups ---

    def resolve(self, stream_id: str) -> EpisodeRef:
        tokens = stream_id.split(":")

        if len(tokens) == 1:
            ref = self._by_code.get(stream_id)
            if ref is None:
                raise NotFoundError(f"Unknown episode code: {stream_id}")
            return ref

        if len(tokens) != 3:
            raise NotFoundError(f"Malformed stream id: {stream_id}")

        series_id, season, episode = tokens
        if series_id != self.series_id:
            raise NotFoundError(f"Unknown series: {series_id}")

        try:
            number = (int(season), int(episode))
        except ValueError:
            raise NotFoundError(f"Malformed stream id: {stream_id}")

        ref = self._by_number.get(number)
        if ref is None:
            raise NotFoundError(f"No episode S{number[0]}E{number[1]} in {series_id}")
        return ref

    def sources_for(self, episode: EpisodeRef) -> List[StreamSource]:
        return list(self._sources.get(episode.episode_id, []))

    def episodes(self) -> List[EpisodeRef]:
        return sorted(self._by_code.values(), key=lambda e: (e.season, e.episode))

    # --- Static payloads ---

    def manifest(self, version: str) -> Dict[str, Any]:
        manifest = dict(self._manifest)
        manifest["version"] = version
        return manifest

    def catalog(self, catalog_id: str) -> Dict[str, Any]:
        if catalog_id != self._catalog["id"]:
            raise NotFoundError(f"Unknown catalog: {catalog_id}")
        return {
            "metas": [
                {
                    "type": self._series["type"],
                    "id": self.series_id,
                    "name": self._series["name"],
                    "poster": self._series["poster"],
                    "genres": self._catalog.get("genres", self._series.get("genres", [])),
                }
            ]
        }

    def meta(self, series_id: str) -> Dict[str, Any]:
        if series_id != self.series_id:
            raise NotFoundError(f"Unknown series: {series_id}")
        meta = dict(self._series)
        meta["videos"] = [
            {"season": e.season, "episode": e.episode, "id": e.episode_id, "title": e.title}
            for e in self.episodes()
        ]
        return {"meta": meta}


@lru_cache(maxsize=4)
def load_repository(path: Optional[str] = None) -> StaticEpisodeRepository:
    return StaticEpisodeRepository.from_file(Path(path) if path else DEFAULT_CATALOG_FILE)


def get_episode_repository() -> EpisodeRepository:
    """FastAPI dependency."""
    return load_repository(settings.CATALOG_FILE)
