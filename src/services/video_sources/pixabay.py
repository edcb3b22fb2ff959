"""Pixabay video source for royalty-free stock footage."""

import logging
import os
from typing import Optional

import aiohttp

from models.video import VideoResult
from services.video_sources.base import VideoSource
from utils.retry import NetworkError, TemporaryServiceError, retry_api_call

logger = logging.getLogger(__name__)


class PixabayVideoSource(VideoSource):
    """Pixabay video source.

    Pixabay provides royalty-free videos under the Pixabay License.

    API Documentation: https://pixabay.com/api/docs/#api_search_videos
    """

    BASE_URL = "https://pixabay.com/api/videos/"

    # Quality preference order: large (1920x1080) > medium (1280x720) > small > tiny
    QUALITY_ORDER = ("large", "medium", "small", "tiny")

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_results: int = 5,
        timeout: float = 10.0,
    ):
        """Initialize Pixabay video source.

        Args:
            api_key: Pixabay API key (defaults to PIXABAY_API_KEY)
            max_results: Maximum number of search results (Pixabay requires 3-200)
            timeout: Request timeout in seconds
        """
        self.api_key = api_key if api_key is not None else os.getenv("PIXABAY_API_KEY", "")
        self.max_results = max(3, min(max_results, 200))
        self.timeout = timeout

        if not self.api_key:
            logger.warning(
                "[Pixabay] No API key configured. Set PIXABAY_API_KEY to enable Pixabay search."
            )

    def get_source_name(self) -> str:
        """Get the name of this video source."""
        return "pixabay"

    def is_configured(self) -> bool:
        """Check if this source has required configuration."""
        return bool(self.api_key)

    @retry_api_call(max_retries=2, base_delay=1.0)
    async def search_videos(self, phrase: str) -> list[VideoResult]:
        """Search Pixabay for videos matching the search phrase.

        Args:
            phrase: Search query string

        Returns:
            List of VideoResult objects in provider relevance order
        """
        if not phrase.strip() or not self.api_key:
            return []

        logger.debug(f"[Pixabay] Searching videos for: '{phrase}'")

        params = {
            "key": self.api_key,
            "q": phrase[:100],  # Pixabay rejects queries over 100 chars
            "per_page": self.max_results,
            "video_type": "film",
            "safesearch": "true",
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.BASE_URL,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status in (400, 401, 403):
                        logger.error(f"[Pixabay] Request rejected with status {response.status}")
                        return []

                    if response.status == 429:
                        logger.warning("[Pixabay] Rate limit exceeded")
                        raise TemporaryServiceError("Pixabay rate limit exceeded")

                    if response.status >= 500:
                        raise TemporaryServiceError(f"Pixabay returned status {response.status}")

                    if response.status != 200:
                        logger.warning(f"[Pixabay] API returned status {response.status}")
                        return []

                    data = await response.json()

        except aiohttp.ClientError as e:
            logger.error(f"[Pixabay] Network error: {e}")
            raise NetworkError(f"Pixabay network error: {e}") from e
        except TimeoutError as e:
            raise NetworkError(f"Pixabay search timed out after {self.timeout}s") from e

        results = []
        for video in data.get("hits", []):
            result = self._parse_video(video)
            if result:
                results.append(result)

        logger.debug(f"[Pixabay] Found {len(results)} videos for '{phrase}'")
        return results

    def _parse_video(self, video: dict) -> Optional[VideoResult]:
        """Parse Pixabay API video response into VideoResult.

        Args:
            video: Video dict from Pixabay API

        Returns:
            VideoResult or None if the entry has no usable file
        """
        video_id = str(video.get("id", ""))
        videos_dict = video.get("videos") or {}
        if not video_id or not videos_dict:
            return None

        rendition = None
        for quality in self.QUALITY_ORDER:
            candidate = videos_dict.get(quality) or {}
            if candidate.get("url"):
                rendition = candidate
                break

        if rendition is None:
            return None

        # Pixabay doesn't provide titles, so build one from tags
        tags = video.get("tags", "")
        title = " ".join(tags.replace(",", " ").split()[:5]).title()

        return VideoResult(
            video_id=f"pixabay_{video_id}",
            title=title or f"pixabay_video_{video_id}",
            url=video.get("pageURL", f"https://pixabay.com/videos/id-{video_id}/"),
            duration=int(video.get("duration") or 0),
            download_url=rendition["url"],
            width=int(rendition.get("width") or 0),
            height=int(rendition.get("height") or 0),
            source="pixabay",
            license="Pixabay License",
            creator=video.get("user"),
        )
