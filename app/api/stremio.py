from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from loguru import logger

from app.api.dependencies import get_stream_resolver
from app.catalog.store import EpisodeRepository, get_episode_repository
from app.core.config import settings
from app.services.resolver import StreamResolver

router = APIRouter()

# --- Manifest ---

@router.get("/")
@router.get("/manifest.json")
async def manifest(repository: EpisodeRepository = Depends(get_episode_repository)):
    return repository.manifest(settings.VERSION)

# --- Catalog / Meta ---

@router.get("/catalog/series/{catalog_id}.json")
async def catalog(catalog_id: str, repository: EpisodeRepository = Depends(get_episode_repository)):
    return repository.catalog(catalog_id)


@router.get("/meta/series/{series_id}.json")
async def meta(series_id: str, repository: EpisodeRepository = Depends(get_episode_repository)):
    return repository.meta(series_id)

# --- Streams ---

@router.get("/stream/series/{stream_id}.json")
async def stream(
    stream_id: str,
    repository: EpisodeRepository = Depends(get_episode_repository),
    resolver: StreamResolver = Depends(get_stream_resolver),
):
    """
    Streams for one episode. Uncached content yields an empty list, not an error.
    """
    episode = repository.resolve(stream_id)
    logger.info(f"Stream request: {stream_id} -> {episode.episode_id}")

    streams = await resolver.resolve(episode)
    return {"streams": [s.to_stremio() for s in streams]}

# --- Health ---

@router.get("/health")
async def health():
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION,
    }
