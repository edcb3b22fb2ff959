"""Stock media download service with bounded concurrency."""

import asyncio
import logging
from pathlib import Path

import aiohttp

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 256

CONTENT_TYPE_EXTENSIONS = {
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/webm": ".webm",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


class DownloadError(Exception):
    """Raised when a media file cannot be downloaded."""

    pass


class MediaDownloader:
    """Downloads stock media files into a job's work directory.

    Downloads share one semaphore so at most max_concurrent transfers run at
    once across a job's scenes.
    """

    def __init__(self, timeout: float = 60.0, max_concurrent: int = 3):
        """Initialize the downloader.

        Args:
            timeout: Total timeout for one download in seconds
            max_concurrent: Maximum concurrent downloads
        """
        self.timeout = timeout
        self.max_concurrent = max_concurrent
        self.semaphore = asyncio.Semaphore(max_concurrent)

    async def download(self, url: str, output_stem: Path, default_ext: str = ".mp4") -> Path:
        """Stream a remote file to disk.

        Args:
            url: Direct download URL
            output_stem: Destination path without extension
            default_ext: Extension to use when the response doesn't reveal one

        Returns:
            Path to the downloaded file

        Raises:
            DownloadError: On HTTP errors, network errors, timeouts or empty bodies
        """
        async with self.semaphore:
            output_stem.parent.mkdir(parents=True, exist_ok=True)
            output_path = output_stem

            try:
                async with aiohttp.ClientSession() as session:
                    async with session.get(
                        url, timeout=aiohttp.ClientTimeout(total=self.timeout)
                    ) as response:
                        if response.status != 200:
                            raise DownloadError(
                                f"Download failed with status {response.status}: {url}"
                            )

                        ext = self._get_extension(
                            response.headers.get("content-type", ""), url, default_ext
                        )
                        output_path = output_stem.with_suffix(ext)

                        size = 0
                        with open(output_path, "wb") as f:
                            async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                                f.write(chunk)
                                size += len(chunk)

            except aiohttp.ClientError as e:
                output_path.unlink(missing_ok=True)
                raise DownloadError(f"Network error downloading {url}: {e}") from e
            except TimeoutError as e:
                output_path.unlink(missing_ok=True)
                raise DownloadError(f"Download timed out after {self.timeout}s: {url}") from e
            except OSError as e:
                output_path.unlink(missing_ok=True)
                raise DownloadError(f"File error saving {url}: {e}") from e

            if size == 0:
                output_path.unlink(missing_ok=True)
                raise DownloadError(f"Downloaded file is empty: {url}")

            logger.debug(f"[MediaDownloader] Downloaded {size} bytes to {output_path.name}")
            return output_path

    @staticmethod
    def _get_extension(content_type: str, url: str, default_ext: str) -> str:
        """Determine file extension from content type or URL."""
        for mime, ext in CONTENT_TYPE_EXTENSIONS.items():
            if mime in content_type:
                return ext

        # Fall back to URL extension
        path = url.split("?", 1)[0].lower()
        for ext in (".mp4", ".mov", ".webm", ".jpg", ".jpeg", ".png", ".webp"):
            if path.endswith(ext):
                return ext if ext != ".jpeg" else ".jpg"

        return default_ext
