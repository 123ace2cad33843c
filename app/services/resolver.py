"""
Stream resolution: one StreamSource in, at most one StreamDescriptor out.

Each source walks an explicit state machine:

    LOOKUP -> FOUND | SUBMIT
    SUBMIT -> FOUND | SUBMIT_PENDING
    SUBMIT_PENDING -> RECONCILE
    RECONCILE -> FOUND | RECONCILE | FAILED
    FOUND -> READY_CHECK
    READY_CHECK -> STREAM_URL | NOT_READY
    STREAM_URL -> RESOLVED | FAILED

`transition` is pure; `StreamResolver` performs the TorBox call that belongs
to each state and feeds the observation back in.
"""
import asyncio
from contextlib import AsyncExitStack
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Iterable, List, Optional
import httpx
from loguru import logger
from app.core.errors import ConfigError, UpstreamError
from app.catalog.store import EpisodeRepository
from app.models import EpisodeRef, RemoteTorrent, StreamDescriptor, StreamSource
from app.services.base import DebridClient
from app.utils.locks import KeyedLock


class ResolveState(str, Enum):
    LOOKUP = "lookup"
    FOUND = "found"
    SUBMIT = "submit"
    SUBMIT_PENDING = "submit_pending"
    RECONCILE = "reconcile"
    READY_CHECK = "ready_check"
    STREAM_URL = "stream_url"
    RESOLVED = "resolved"
    NOT_READY = "not_ready"
    FAILED = "failed"


TERMINAL_STATES = frozenset({ResolveState.RESOLVED, ResolveState.NOT_READY, ResolveState.FAILED})
# States during which the per-hash submission lock is held
SUBMISSION_STATES = frozenset({ResolveState.SUBMIT, ResolveState.SUBMIT_PENDING, ResolveState.RECONCILE})

# TorBox reports readiness inconsistently; any of these means the data is there
READY_DOWNLOAD_STATES = frozenset({"completed", "uploading"})


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay: float = 2.0

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * attempt


@dataclass(frozen=True)
class Outcome:
    """What the last state observed."""
    torrent: Optional[RemoteTorrent] = None
    attempt: int = 0
    url: Optional[str] = None


def find_torrent(torrents: Iterable[RemoteTorrent], info_hash: str) -> Optional[RemoteTorrent]:
    for torrent in torrents:
        if torrent.matches(info_hash):
            return torrent
    return None


def is_ready(torrent: RemoteTorrent) -> bool:
    return torrent.download_state in READY_DOWNLOAD_STATES or torrent.download_finished


def select_file_id(torrent: RemoteTorrent, file_idx: int) -> int:
    """
    Map a source's file index onto TorBox's file ids.
    Out of range falls back to the first file; no files at all means the
    index is used as the id.
    """
    if not torrent.files:
        return file_idx
    if 0 <= file_idx < len(torrent.files):
        return torrent.files[file_idx].id
    return torrent.files[0].id


def transition(state: ResolveState, outcome: Outcome, policy: RetryPolicy) -> ResolveState:
    if state is ResolveState.LOOKUP:
        return ResolveState.FOUND if outcome.torrent else ResolveState.SUBMIT

    if state is ResolveState.SUBMIT:
        return ResolveState.FOUND if outcome.torrent else ResolveState.SUBMIT_PENDING

    if state is ResolveState.SUBMIT_PENDING:
        return ResolveState.RECONCILE if policy.max_attempts > 0 else ResolveState.FAILED

    if state is ResolveState.RECONCILE:
        if outcome.torrent:
            return ResolveState.FOUND
        if outcome.attempt < policy.max_attempts:
            return ResolveState.RECONCILE
        return ResolveState.FAILED

    if state is ResolveState.FOUND:
        return ResolveState.READY_CHECK

    if state is ResolveState.READY_CHECK:
        if outcome.torrent and is_ready(outcome.torrent):
            return ResolveState.STREAM_URL
        return ResolveState.NOT_READY

    if state is ResolveState.STREAM_URL:
        return ResolveState.RESOLVED if outcome.url else ResolveState.FAILED

    raise ValueError(f"No transition out of terminal state {state.value}")


class StreamResolver:
    """
    Resolves an episode's sources through TorBox, one after another.

    Absence of a stream is the normal outcome for content TorBox hasn't
    cached yet, so per-source failures only shrink the result list.
    """

    def __init__(
        self,
        client: DebridClient,
        repository: EpisodeRepository,
        policy: Optional[RetryPolicy] = None,
        locks: Optional[KeyedLock] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.repository = repository
        self.policy = policy or RetryPolicy()
        self.locks = locks if locks is not None else KeyedLock()
        self._sleep = sleep

    async def resolve(self, episode: EpisodeRef) -> List[StreamDescriptor]:
        """
        Resolve every source of `episode`, keeping source order.
        A missing API key or an unreachable TorBox yields an empty list.
        """
        streams = []
        try:
            for source in self.repository.sources_for(episode):
                descriptor = await self.resolve_source(episode, source)
                if descriptor:
                    streams.append(descriptor)
        except ConfigError as e:
            logger.warning(f"Stream resolution disabled: {e}")
            return []
        except httpx.HTTPError as e:
            logger.error(f"TorBox unreachable while resolving {episode.episode_id}: {e!r}")
            return []

        logger.info(f"Resolved {len(streams)} stream(s) for {episode.episode_id}")
        return streams

    async def resolve_source(self, episode: EpisodeRef, source: StreamSource) -> Optional[StreamDescriptor]:
        if not source.info_hash:
            logger.debug(f"{episode.episode_id}: source without info hash, skipping")
            return None

        info_hash = source.info_hash
        state = ResolveState.LOOKUP
        outcome = Outcome()

        async with AsyncExitStack() as lock_stack:
            while state not in TERMINAL_STATES:
                try:
                    outcome = await self._step(state, source, outcome, lock_stack)
                except UpstreamError as e:
                    logger.warning(f"[{info_hash}] TorBox failed during {state.value}: {e}")
                    state = ResolveState.FAILED
                    break

                previous, state = state, transition(state, outcome, self.policy)
                logger.debug(f"[{info_hash}] {previous.value} -> {state.value}")

                if state not in SUBMISSION_STATES:
                    await lock_stack.aclose()

        if state is ResolveState.NOT_READY:
            torrent = outcome.torrent
            logger.info(f"[{info_hash}] Not cached yet (state: {torrent.download_state if torrent else None})")
            return None

        if state is not ResolveState.RESOLVED:
            logger.warning(f"[{info_hash}] No stream for {episode.episode_id}")
            return None

        return StreamDescriptor(
            name=self.repository.stream_name,
            title=f"{episode.title or episode.episode_id}\nS{episode.season:02d}E{episode.episode:02d}",
            url=outcome.url,
            binge_group=self.repository.binge_group,
        )

    async def _step(self, state: ResolveState, source: StreamSource, outcome: Outcome, lock_stack: AsyncExitStack) -> Outcome:
        info_hash = source.info_hash

        if state is ResolveState.LOOKUP:
            torrents = await self.client.list_torrents()
            return Outcome(torrent=find_torrent(torrents, info_hash))

        if state is ResolveState.SUBMIT:
            contended = await lock_stack.enter_async_context(self.locks.hold(info_hash.lower()))
            if contended:
                # Someone else submitted this hash while we waited
                existing = find_torrent(await self.client.list_torrents(), info_hash)
                if existing:
                    return Outcome(torrent=existing)

            submission = await self.client.submit_torrent(info_hash)
            if isinstance(submission, RemoteTorrent):
                return Outcome(torrent=submission)
            logger.info(f"[{info_hash}] Submission acknowledged (id: {submission.torrent_id}), reconciling")
            return Outcome()

        if state is ResolveState.RECONCILE:
            attempt = outcome.attempt + 1
            await self._sleep(self.policy.delay_for(attempt))
            logger.info(f"[{info_hash}] Reconcile attempt {attempt}/{self.policy.max_attempts}")
            try:
                torrents = await self.client.list_torrents()
            except UpstreamError as e:
                logger.warning(f"[{info_hash}] Reconcile poll failed: {e}")
                return Outcome(attempt=attempt)
            return Outcome(torrent=find_torrent(torrents, info_hash), attempt=attempt)

        if state is ResolveState.STREAM_URL:
            torrent = outcome.torrent
            file_id = select_file_id(torrent, source.file_idx)
            try:
                url = await self.client.request_download_url(torrent.id, file_id)
            except (UpstreamError, httpx.HTTPError) as e:
                logger.warning(f"[{info_hash}] Download link request failed: {e}")
                url = None
            return Outcome(torrent=torrent, url=url)

        # FOUND, SUBMIT_PENDING and READY_CHECK observe nothing new
        return outcome
