"""Pexels video source for royalty-free stock footage."""

import logging
import os
from typing import Optional

import aiohttp

from models.video import VideoResult
from services.video_sources.base import VideoSource
from utils.retry import NetworkError, TemporaryServiceError, retry_api_call

logger = logging.getLogger(__name__)


class PexelsVideoSource(VideoSource):
    """Pexels video source.

    Pexels provides royalty-free videos under the Pexels license (no
    attribution required for most uses).

    API Documentation: https://www.pexels.com/api/documentation/
    """

    BASE_URL = "https://api.pexels.com/videos/search"

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_results: int = 5,
        timeout: float = 10.0,
    ):
        """Initialize Pexels video source.

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
                "[Pexels] No API key configured. Set PEXELS_API_KEY to enable Pexels search."
            )

    def get_source_name(self) -> str:
        """Get the name of this video source."""
        return "pexels"

    def is_configured(self) -> bool:
        """Check if this source has required configuration."""
        return bool(self.api_key)

    @retry_api_call(max_retries=2, base_delay=1.0)
    async def search_videos(self, phrase: str) -> list[VideoResult]:
        """Search Pexels for landscape videos matching the search phrase.

        Args:
            phrase: Search query string

        Returns:
            List of VideoResult objects in provider relevance order
        """
        if not phrase.strip() or not self.api_key:
            return []

        logger.debug(f"[Pexels] Searching videos for: '{phrase}'")

        headers = {"Authorization": self.api_key}
        params = {
            "query": phrase,
            "per_page": self.max_results,
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
                        logger.error("[Pexels] Invalid API key")
                        return []

                    if response.status == 429:
                        logger.warning("[Pexels] Rate limit exceeded")
                        raise TemporaryServiceError("Pexels rate limit exceeded")

                    if response.status >= 500:
                        raise TemporaryServiceError(f"Pexels returned status {response.status}")

                    if response.status != 200:
                        logger.warning(f"[Pexels] API returned status {response.status}")
                        return []

                    data = await response.json()

        except aiohttp.ClientError as e:
            logger.error(f"[Pexels] Network error: {e}")
            raise NetworkError(f"Pexels network error: {e}") from e
        except TimeoutError as e:
            raise NetworkError(f"Pexels search timed out after {self.timeout}s") from e

        results = []
        for video in data.get("videos", []):
            result = self._parse_video(video)
            if result:
                results.append(result)

        logger.debug(f"[Pexels] Found {len(results)} videos for '{phrase}'")
        return results

    def _parse_video(self, video: dict) -> Optional[VideoResult]:
        """Parse Pexels API video response into VideoResult.

        Picks the HD rendition with the greatest height, falling back to SD.

        Args:
            video: Video dict from Pexels API

        Returns:
            VideoResult or None if the entry has no usable file
        """
        video_id = str(video.get("id", ""))
        video_files = [f for f in video.get("video_files", []) if f.get("link")]
        if not video_id or not video_files:
            return None

        best_file = max(
            video_files,
            key=lambda f: (f.get("quality") == "hd", f.get("height") or 0),
        )

        video_url = video.get("url", f"https://www.pexels.com/video/{video_id}/")

        # Pexels URLs are like: https://www.pexels.com/video/title-here-12345/
        slug = video_url.rstrip("/").split("/")[-1]
        title = " ".join(part for part in slug.split("-") if not part.isdigit()).title()

        return VideoResult(
            video_id=f"pexels_{video_id}",
            title=title or f"pexels_video_{video_id}",
            url=video_url,
            duration=int(video.get("duration") or 0),
            download_url=best_file["link"],
            width=int(best_file.get("width") or video.get("width") or 0),
            height=int(best_file.get("height") or video.get("height") or 0),
            source="pexels",
            license="Pexels License",
            creator=(video.get("user") or {}).get("name"),
        )
