from fastapi import Depends
from app.catalog.store import EpisodeRepository, get_episode_repository
from app.core.config import settings
from app.services.resolver import RetryPolicy, StreamResolver
from app.services.torbox import torbox_service
from app.utils.locks import KeyedLock

# Shared across requests so concurrent resolutions of one hash submit it once
submission_locks = KeyedLock()

retry_policy = RetryPolicy(
    max_attempts=settings.RECONCILE_MAX_ATTEMPTS,
    base_delay=settings.RECONCILE_BASE_DELAY,
)


def get_stream_resolver(repository: EpisodeRepository = Depends(get_episode_repository)) -> StreamResolver:
    return StreamResolver(
        client=torbox_service,
        repository=repository,
        policy=retry_policy,
        locks=submission_locks,
    )
