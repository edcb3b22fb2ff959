"""Data models for still image search results."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ImageResult:
    """A still image returned by an image source.

    Used when no stock video fits a scene; the image is turned into a clip
    of the scene's duration.
    """

    image_id: str
    title: str
    url: str  # Page URL on the provider's site
    download_url: str  # Direct file link, already sized for 1080p output
    width: int
    height: int
    source: str  # unsplash, pexels
    description: Optional[str] = None
    license: Optional[str] = None
    photographer: Optional[str] = None

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 0.0

    @property
    def is_landscape(self) -> bool:
        return self.aspect_ratio > 1.0

    @property
    def credit(self) -> str:
        """Attribution line, e.g. "Photo by Ana on Pexels"."""
        provider = self.source.capitalize()
        if self.photographer:
            return f"Photo by {self.photographer} on {provider}"
        return f"Photo from {provider}"
