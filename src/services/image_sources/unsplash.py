"""Unsplash image source for free high-resolution photos."""

import logging
import os
from typing import Optional

import aiohttp

from models.image import ImageResult
from services.image_sources.base import ImageSource
from utils.retry import NetworkError, TemporaryServiceError, retry_api_call

logger = logging.getLogger(__name__)


class UnsplashImageSource(ImageSource):
    """Unsplash image source.

    API Documentation: https://unsplash.com/documentation#search-photos

    Demo applications are limited to 50 requests per hour.
    """

    BASE_URL = "https://api.unsplash.com/search/photos"

    def __init__(
        self,
        access_key: Optional[str] = None,
        max_results: int = 10,
        timeout: float = 10.0,
    ):
        """Initialize Unsplash image source.

        Args:
            access_key: Unsplash access key (defaults to UNSPLASH_ACCESS_KEY)
            max_results: Maximum number of search results to return (max 30 per page)
            timeout: Request timeout in seconds
        """
        self.access_key = (
            access_key if access_key is not None else os.getenv("UNSPLASH_ACCESS_KEY", "")
        )
        self.max_results = min(max_results, 30)  # Unsplash API limit
        self.timeout = timeout

        if not self.access_key:
            logger.warning(
                "[Unsplash] No access key configured. Set UNSPLASH_ACCESS_KEY to enable Unsplash search."
            )

    def get_source_name(self) -> str:
        """Get the name of this image source."""
        return "unsplash"

    def is_configured(self) -> bool:
        """Check if this source has required configuration."""
        return bool(self.access_key)

    @retry_api_call(max_retries=2, base_delay=1.0)
    async def search_images(self, phrase: str, per_page: int = 1) -> list[ImageResult]:
        """Search Unsplash for landscape photos matching the search phrase.

        Args:
            phrase: Search query string
            per_page: Maximum number of results (default 1 for efficiency)

        Returns:
            List of ImageResult objects matching the search criteria
        """
        if not phrase.strip() or not self.access_key:
            return []

        logger.debug(f"[Unsplash] Searching for: '{phrase}'")

        headers = {
            "Authorization": f"Client-ID {self.access_key}",
            "Accept-Version": "v1",
        }
        params = {
            "query": phrase,
            "per_page": min(per_page, self.max_results),
            "orientation": "landscape",
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.BASE_URL,
                    headers=headers,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status == 401:
                        logger.error("[Unsplash] Invalid access key")
                        return []

                    # Unsplash signals an exhausted hourly quota with 403
                    if response.status in (403, 429):
                        logger.warning("[Unsplash] Rate limit exceeded")
                        raise TemporaryServiceError("Unsplash rate limit exceeded")

                    if response.status != 200:
                        logger.warning(f"[Unsplash] API returned status {response.status}")
                        return []

                    data = await response.json()

        except aiohttp.ClientError as e:
            logger.error(f"[Unsplash] Network error: {e}")
            raise NetworkError(f"Unsplash network error: {e}") from e
        except TimeoutError as e:
            raise NetworkError(f"Unsplash search timed out after {self.timeout}s") from e

        results = []
        for photo in data.get("results", []):
            result = self._parse_photo(photo)
            if result:
                results.append(result)

        logger.debug(f"[Unsplash] Found {len(results)} images")
        return results

    def _parse_photo(self, photo: dict) -> Optional[ImageResult]:
        """Parse Unsplash API photo response into ImageResult.

        Args:
            photo: Photo dict from Unsplash API

        Returns:
            ImageResult or None if the entry has no usable URL
        """
        photo_id = str(photo.get("id", ""))
        urls = photo.get("urls") or {}
        download_url = urls.get("regular") or urls.get("full", "")
        if not photo_id or not download_url:
            return None

        description = photo.get("description") or photo.get("alt_description") or ""

        return ImageResult(
            image_id=f"unsplash_{photo_id}",
            title=description[:100] if description else f"Unsplash Photo {photo_id}",
            url=(photo.get("links") or {}).get("html", f"https://unsplash.com/photos/{photo_id}"),
            download_url=download_url,
            width=int(photo.get("width") or 0),
            height=int(photo.get("height") or 0),
            source="unsplash",
            description=description or None,
            license="Unsplash License",
            photographer=(photo.get("user") or {}).get("name"),
        )
