"""Video sources package for stock footage lookup."""

import logging

from services.video_sources.base import VideoSource
from services.video_sources.pexels import PexelsVideoSource
from services.video_sources.pixabay import PixabayVideoSource

logger = logging.getLogger(__name__)


def create_video_sources(config: dict) -> list[VideoSource]:
    """Build the configured video sources, in VIDEO_SOURCES order.

    Unknown names and sources without an API key are skipped.
    """
    timeout = config.get("stock_search_timeout", 10.0)
    factories = {
        "pexels": lambda: PexelsVideoSource(api_key=config.get("pexels_api_key"), timeout=timeout),
        "pixabay": lambda: PixabayVideoSource(api_key=config.get("pixabay_api_key"), timeout=timeout),
    }

    sources = []
    for name in config.get("video_sources", []):
        if name not in factories:
            logger.warning(f"Unknown video source '{name}' ignored")
            continue
        source = factories[name]()
        if not source.is_configured():
            logger.info(f"Video source '{name}' has no API key, skipping")
            continue
        sources.append(source)
    return sources


__all__ = ["VideoSource", "PexelsVideoSource", "PixabayVideoSource", "create_video_sources"]
