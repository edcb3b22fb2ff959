# Data models for stock media search results
from .video import VideoResult
from .image import ImageResult

__all__ = [
    "VideoResult",
    "ImageResult",
]
