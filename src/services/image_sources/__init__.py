"""Image sources package for still image fallback lookup."""

import logging

from services.image_sources.base import ImageSource
from services.image_sources.pexels import PexelsImageSource
from services.image_sources.unsplash import UnsplashImageSource

logger = logging.getLogger(__name__)


def create_image_sources(config: dict) -> list[ImageSource]:
    """Build the configured image sources, in IMAGE_SOURCES order.

    Unknown names and sources without an API key are skipped.
    """
    timeout = config.get("stock_search_timeout", 10.0)
    factories = {
        "unsplash": lambda: UnsplashImageSource(
            access_key=config.get("unsplash_access_key"), timeout=timeout
        ),
        "pexels": lambda: PexelsImageSource(api_key=config.get("pexels_api_key"), timeout=timeout),
    }

    sources = []
    for name in config.get("image_sources", []):
        if name not in factories:
            logger.warning(f"Unknown image source '{name}' ignored")
            continue
        source = factories[name]()
        if not source.is_configured():
            logger.info(f"Image source '{name}' has no API key, skipping")
            continue
        sources.append(source)
    return sources


__all__ = ["ImageSource", "PexelsImageSource", "UnsplashImageSource", "create_image_sources"]
