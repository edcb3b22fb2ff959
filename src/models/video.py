"""Video-related data models."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class VideoResult:
    """Represents a stock video search result from any source.

    The source and license fields track where footage came from and what
    licensing restrictions apply. Width and height describe the rendition
    behind download_url, not the best rendition the provider has.
    """

    video_id: str
    title: str
    url: str  # Page URL on the provider's site
    duration: int  # in seconds
    download_url: Optional[str] = None  # Direct file link
    width: int = 0
    height: int = 0
    source: str = "pexels"  # pexels, pixabay, etc.
    license: Optional[str] = None
    creator: Optional[str] = None

    @property
    def is_landscape(self) -> bool:
        """Check if video is landscape orientation."""
        return self.width > self.height > 0

    @property
    def credit(self) -> str:
        """Attribution line, e.g. "Video by Jane Diver on Pexels"."""
        provider = self.source.capitalize()
        if self.creator:
            return f"Video by {self.creator} on {provider}"
        return f"Video from {provider}"
