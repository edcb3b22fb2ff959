"""Pexels image source for royalty-free stock photos."""

import logging
import os
from typing import Optional

import aiohttp

from models.image import ImageResult
from services.image_sources.base import ImageSource
from utils.retry import NetworkError, TemporaryServiceError, retry_api_call

logger = logging.getLogger(__name__)


class PexelsImageSource(ImageSource):
    """Pexels image source.

    API Documentation: https://www.pexels.com/api/documentation/

    Rate limits: 200 requests per hour, 20,000 requests per month
    """

    BASE_URL = "https://api.pexels.com/v1/search"

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_results: int = 10,
        timeout: float = 10.0,
    ):
        """Initialize Pexels image source.

        Args:
            api_key: Pexels API key (defaults to PEXELS_API_KEY)
            max_results: Maximum number of search results to return (max 80 per page)
            timeout: Request timeout in seconds
        """
        self.api_key = api_key if api_key is not None else os.getenv("PEXELS_API_KEY", "")
        self.max_results = min(max_results, 80)  # Pexels API limit
        self.timeout = timeout

        if not self.api_key:
            logger.warning(
                "[Pexels Images] No API key configured. Set PEXELS_API_KEY to enable Pexels search."
            )

    def get_source_name(self) -> str:
        """Get the name of this image source."""
        return "pexels"

    def is_configured(self) -> bool:
        """Check if this source has required configuration."""
        return bool(self.api_key)

    @retry_api_call(max_retries=2, base_delay=1.0)
    async def search_images(self, phrase: str, per_page: int = 1) -> list[ImageResult]:
        """Search Pexels for landscape photos matching the search phrase.

        Args:
            phrase: Search query string
            per_page: Maximum number of results (default 1 for efficiency)

        Returns:
            List of ImageResult objects matching the search criteria
        """
        if not phrase.strip() or not self.api_key:
            return []

        logger.debug(f"[Pexels Images] Searching for: '{phrase}'")

        headers = {"Authorization": self.api_key}
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
                        logger.error("[Pexels Images] Invalid API key")
                        return []

                    if response.status == 429:
                        logger.warning("[Pexels Images] Rate limit exceeded")
                        raise TemporaryServiceError("Pexels rate limit exceeded")

                    if response.status != 200:
                        logger.warning(f"[Pexels Images] API returned status {response.status}")
                        return []

                    data = await response.json()

        except aiohttp.ClientError as e:
            logger.error(f"[Pexels Images] Network error: {e}")
            raise NetworkError(f"Pexels network error: {e}") from e
        except TimeoutError as e:
            raise NetworkError(f"Pexels image search timed out after {self.timeout}s") from e

        results = []
        for photo in data.get("photos", []):
            result = self._parse_photo(photo)
            if result:
                results.append(result)

        logger.debug(f"[Pexels Images] Found {len(results)} images")
        return results

    def _parse_photo(self, photo: dict) -> Optional[ImageResult]:
        """Parse Pexels API photo response into ImageResult.

        Args:
            photo: Photo dict from Pexels API

        Returns:
            ImageResult or None if the entry has no usable URL
        """
        photo_id = str(photo.get("id", ""))
        src = photo.get("src") or {}
        download_url = src.get("large2x") or src.get("large") or src.get("original", "")
        if not photo_id or not download_url:
            return None

        alt_text = photo.get("alt", "")

        return ImageResult(
            image_id=f"pexels_{photo_id}",
            title=alt_text[:100] if alt_text else f"Pexels Photo {photo_id}",
            url=photo.get("url", f"https://www.pexels.com/photo/{photo_id}/"),
            download_url=download_url,
            width=int(photo.get("width") or 0),
            height=int(photo.get("height") or 0),
            source="pexels",
            description=alt_text or None,
            license="Pexels License",
            photographer=photo.get("photographer"),
        )
