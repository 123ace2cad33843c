"""Shared test fixtures."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from app.catalog.store import EpisodeRepository, StaticEpisodeRepository, load_repository
from app.core.errors import ConfigError, NotFoundError
from app.models import (
    EpisodeRef,
    PendingSubmission,
    RemoteFile,
    RemoteTorrent,
    StreamSource,
)
from app.services.base import DebridClient

RO_1_HASH = "cdab4a928dbbff643bbe5531f216eb36a60c85af"


def make_torrent(
    info_hash: str = RO_1_HASH,
    *,
    torrent_id: int = 7,
    state: str | None = "completed",
    finished: bool = False,
    file_ids: tuple[int, ...] = (42,),
) -> RemoteTorrent:
    return RemoteTorrent(
        id=torrent_id,
        hash=info_hash,
        name="[One Pace][1] Romance Dawn 01 [1080p].mkv",
        download_state=state,
        download_finished=finished,
        files=[RemoteFile(id=i, name=f"file-{i}.mkv") for i in file_ids],
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeDebridClient(DebridClient):
    """In-memory DebridClient.

    ``listings`` is consumed one entry per ``list_torrents`` call; the last
    entry is repeated once the sequence runs out.  Entries that are
    exceptions are raised instead of returned.
    """

    def __init__(
        self,
        listings: list[Any] | None = None,
        submission: Any = None,
        url: Any = "https://cdn/x.mp4",
        configured: bool = True,
    ) -> None:
        self.listings = list(listings or [[]])
        self.submission = submission
        self.url = url
        self.configured = configured
        self.list_calls = 0
        self.submitted: list[str] = []
        self.download_requests: list[tuple[int, int]] = []

    def _check(self) -> None:
        if not self.configured:
            raise ConfigError("No TorBox API Key configured")

    async def list_torrents(self) -> list[RemoteTorrent]:
        self._check()
        index = min(self.list_calls, len(self.listings) - 1)
        self.list_calls += 1
        entry = self.listings[index]
        if isinstance(entry, Exception):
            raise entry
        return list(entry)

    async def submit_torrent(self, info_hash: str) -> RemoteTorrent | PendingSubmission:
        self._check()
        self.submitted.append(info_hash)
        if isinstance(self.submission, Exception):
            raise self.submission
        return self.submission or PendingSubmission(hash=info_hash, torrent_id=7)

    async def request_download_url(self, torrent_id: int, file_id: int) -> str:
        self._check()
        self.download_requests.append((torrent_id, file_id))
        # A list supplies one result per call, in order
        result = self.url.pop(0) if isinstance(self.url, list) else self.url
        if isinstance(result, Exception):
            raise result
        return result


class FakeRepository(EpisodeRepository):
    """Single-series repository with explicit sources per episode code."""

    stream_name = "One Pace\nTorbox"
    binge_group = "one-pace"

    def __init__(self, sources: dict[str, list[StreamSource]]) -> None:
        self.sources = sources
        self.episodes = {
            code: EpisodeRef(
                series_id="pp_onepace",
                season=1,
                episode=n,
                episode_id=code,
                title=f"Episode {n}",
            )
            for n, code in enumerate(sources, start=1)
        }

    def resolve(self, stream_id: str) -> EpisodeRef:
        try:
            return self.episodes[stream_id]
        except KeyError:
            raise NotFoundError(stream_id) from None

    def sources_for(self, episode: EpisodeRef) -> list[StreamSource]:
        return list(self.sources.get(episode.episode_id, []))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def repository() -> StaticEpisodeRepository:
    """The bundled One Pace catalog."""
    return load_repository(None)


@pytest.fixture()
def fake_repository() -> FakeRepository:
    return FakeRepository({"RO_1": [StreamSource(info_hash=RO_1_HASH, file_idx=0)]})


@pytest.fixture()
def episode(fake_repository: FakeRepository) -> EpisodeRef:
    return fake_repository.resolve("RO_1")


@pytest.fixture()
def no_sleep() -> AsyncMock:
    """Replacement for asyncio.sleep that records requested delays."""
    return AsyncMock(return_value=None)
