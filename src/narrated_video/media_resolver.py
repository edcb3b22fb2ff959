"""Stock media resolver: maps each scene's keywords to a video, an image, or nothing."""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Optional

from models.image import ImageResult
from models.video import VideoResult
from narrated_video.models import MediaType, Scene
from services.image_sources.base import ImageSource
from services.video_sources.base import VideoSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaMatch:
    media_type: MediaType
    url: Optional[str] = None
    source: Optional[str] = None
    credit: Optional[str] = None


NO_MEDIA = MediaMatch(MediaType.NONE)


class StockMediaResolver:
    """Resolves scenes to stock media, video first, image second.

    Missing media is a normal outcome: every provider error, timeout or
    empty result is logged and the lookup falls through to the next source,
    ending at "none". Nothing here raises for a single scene.
    """

    def __init__(
        self,
        video_sources: list[VideoSource],
        image_sources: list[ImageSource],
        timeout: float = 10.0,
        concurrency: int = 5,
        min_video_height: int = 720,
    ):
        """Initialize the resolver.

        Args:
            video_sources: Video providers, in preference order
            image_sources: Image providers, in preference order
            timeout: Timeout for a single provider call in seconds
            concurrency: Maximum lookups in flight at once
            min_video_height: Smallest acceptable video rendition height
        """
        self.video_sources = [s for s in video_sources if s.is_configured()]
        self.image_sources = [s for s in image_sources if s.is_configured()]
        self.timeout = timeout
        self.concurrency = concurrency
        self.min_video_height = min_video_height

        if not self.video_sources and not self.image_sources:
            logger.warning("No stock media source is configured; every scene will use a placeholder")

    def _select_video(self, results: list[VideoResult]) -> Optional[VideoResult]:
        """First landscape result of acceptable height."""
        for video in results:
            if video.download_url and video.is_landscape and video.height >= self.min_video_height:
                return video
        return None

    @staticmethod
    def _select_image(results: list[ImageResult]) -> Optional[ImageResult]:
        """First landscape image, else the first image."""
        usable = [image for image in results if image.download_url]
        for image in usable:
            if image.is_landscape:
                return image
        return usable[0] if usable else None

    async def _lookup(self, query: str) -> MediaMatch:
        """Walk the provider chain for one query."""
        for source in self.video_sources:
            name = source.get_source_name()
            try:
                results = await asyncio.wait_for(source.search_videos(query), self.timeout)
            except asyncio.TimeoutError:
                logger.warning(f"[{name}] Video search timed out after {self.timeout}s for '{query}'")
                continue
            except Exception as e:
                logger.warning(f"[{name}] Video search failed for '{query}': {e}")
                continue

            video = self._select_video(results)
            if video:
                return MediaMatch(MediaType.VIDEO, video.download_url, name, video.credit)

        for source in self.image_sources:
            name = source.get_source_name()
            try:
                results = await asyncio.wait_for(source.search_images(query, per_page=3), self.timeout)
            except asyncio.TimeoutError:
                logger.warning(f"[{name}] Image search timed out after {self.timeout}s for '{query}'")
                continue
            except Exception as e:
                logger.warning(f"[{name}] Image search failed for '{query}': {e}")
                continue

            image = self._select_image(results)
            if image:
                return MediaMatch(MediaType.IMAGE, image.download_url, name, image.credit)

        return NO_MEDIA

    async def resolve_scene(self, scene: Scene) -> Scene:
        """Resolve a single scene. Never raises."""
        match = await self._lookup(scene.search_query) if scene.keywords else NO_MEDIA
        return self._apply(scene, match)

    @staticmethod
    def _apply(scene: Scene, match: MediaMatch) -> Scene:
        return replace(
            scene,
            media_url=match.url,
            media_type=match.media_type,
            media_source=match.source,
            media_credit=match.credit,
        )

    async def resolve_all(self, scenes: list[Scene]) -> list[Scene]:
        """Resolve every scene concurrently.

        Identical keyword queries share one lookup. Results come back in
        scene ordinal order whatever order the lookups finish in.

        Args:
            scenes: Planned scenes

        Returns:
            New scene list with media fields filled in
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        lookups: dict[str, asyncio.Task] = {}

        async def bounded_lookup(query: str) -> MediaMatch:
            async with semaphore:
                return await self._lookup(query)

        async def resolve(scene: Scene) -> Scene:
            query = scene.search_query.strip().lower()
            if not query:
                return self._apply(scene, NO_MEDIA)
            if query not in lookups:
                lookups[query] = asyncio.create_task(bounded_lookup(query))
            try:
                match = await lookups[query]
            except Exception as e:
                logger.warning(f"Media lookup for scene {scene.ordinal} failed: {e}")
                match = NO_MEDIA
            return self._apply(scene, match)

        resolved = await asyncio.gather(*(resolve(scene) for scene in scenes))
        resolved = sorted(resolved, key=lambda s: s.ordinal)

        with_media = sum(1 for s in resolved if s.has_media)
        videos = sum(1 for s in resolved if s.media_type == MediaType.VIDEO)
        logger.info(
            f"Stock media coverage: {with_media}/{len(resolved)} scenes "
            f"({videos} videos, {with_media - videos} images, {len(lookups)} distinct queries)"
        )
        return resolved
