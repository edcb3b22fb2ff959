"""Base abstraction for still image sources."""

from abc import ABC, abstractmethod

from models.image import ImageResult


class ImageSource(ABC):
    """A searchable stock photo library, consulted after every video source.

    Implementations return an empty list rather than raising when the
    library has nothing for a phrase or no API key is set. Transient
    failures surface as RetryableError subclasses from utils.retry.
    """

    @abstractmethod
    async def search_images(self, phrase: str, per_page: int = 1) -> list[ImageResult]:
        """Search for photos matching a keyword phrase.

        Args:
            phrase: Space-separated scene keywords
            per_page: Maximum number of results to return

        Returns:
            Matching images in provider relevance order
        """

    @abstractmethod
    def get_source_name(self) -> str:
        """Short provider name recorded as a scene's media source."""

    def is_configured(self) -> bool:
        """Whether the source can be queried (sources needing keys override this)."""
        return True
