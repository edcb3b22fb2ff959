"""Base abstraction for stock video sources."""

from abc import ABC, abstractmethod

from models.video import VideoResult


class VideoSource(ABC):
    """A searchable stock footage library (Pexels, Pixabay).

    The resolver tries sources in configured order and takes the first
    landscape result tall enough for the output resolution.
    """

    @abstractmethod
    async def search_videos(self, phrase: str) -> list[VideoResult]:
        """Search for footage matching a keyword phrase.

        Args:
            phrase: Space-separated scene keywords

        Returns:
            VideoResult objects, best candidates first. Empty when nothing
            matched or the source is not configured.

        Raises:
            NetworkError: On connection failures or timeouts
            TemporaryServiceError: When the provider is rate limiting
        """

    @abstractmethod
    def get_source_name(self) -> str:
        """Short provider name recorded as a scene's media source."""

    def is_configured(self) -> bool:
        """Whether the source can be queried (sources needing keys override this)."""
        return True
