"""Narration synthesizer: full script -> one playable audio file.

The speech provider rejects text above a fixed character ceiling, so long
scripts are split at sentence boundaries, synthesized chunk by chunk in
order, and joined with a stream copy.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Protocol

from narrated_video.errors import NarratedVideoError, SynthesisError
from narrated_video.media_tool import MediaTool
from narrated_video.models import NarrationTrack
from services.tts_service import DEFAULT_MAX_CHARS, TTSService

logger = logging.getLogger(__name__)

# Chunk-sum vs final-file drift worth reporting, in seconds
DURATION_DRIFT_WARNING = 0.5

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
_WORD_WITH_SPACE = re.compile(r"\S+\s*|\s+")


class SpeechService(Protocol):
    async def synthesize(self, text: str) -> bytes: ...


def _sentence_pieces(text: str) -> list[str]:
    """Split text into sentences, each keeping its trailing whitespace."""
    pieces = []
    start = 0
    for match in _SENTENCE_BOUNDARY.finditer(text):
        pieces.append(text[start : match.end()])
        start = match.end()
    if start < len(text):
        pieces.append(text[start:])
    return pieces


def _hard_wrap(piece: str, max_chars: int) -> list[str]:
    """Break an over-long sentence at word boundaries, then at characters."""
    parts = []
    for word in _WORD_WITH_SPACE.findall(piece):
        while len(word) > max_chars:
            parts.append(word[:max_chars])
            word = word[max_chars:]
        if word:
            parts.append(word)
    return parts


def split_for_speech(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> list[str]:
    """Split text into the fewest sentence-aligned chunks under max_chars.

    Text within the ceiling comes back as a single chunk equal to the input.
    Otherwise sentences are accumulated greedily; a sentence longer than the
    ceiling on its own is wrapped at word boundaries. Whitespace is kept, so
    "".join(chunks) == text.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")
    if len(text) <= max_chars:
        return [text]

    pieces: list[str] = []
    for sentence in _sentence_pieces(text):
        if len(sentence) <= max_chars:
            pieces.append(sentence)
        else:
            pieces.extend(_hard_wrap(sentence, max_chars))

    chunks: list[str] = []
    current = ""
    for piece in pieces:
        if current and len(current) + len(piece) > max_chars:
            chunks.append(current)
            current = ""
        current += piece
    if current:
        chunks.append(current)

    return chunks


def _remove_files(paths: list[Path]) -> None:
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to remove {path.name}: {e}")


class NarrationSynthesizer:
    """Produces the final narration track for a script."""

    def __init__(
        self,
        speech: SpeechService,
        media_tool: MediaTool,
        max_chars: int = DEFAULT_MAX_CHARS,
    ):
        self.speech = speech
        self.media_tool = media_tool
        self.max_chars = max_chars

    async def _synthesize_to(self, text: str, stem: Path) -> Path:
        audio = await self.speech.synthesize(text.strip())
        ext = TTSService.file_extension_for_audio_format(TTSService.detect_audio_format(audio))
        path = stem.with_suffix(ext)
        path.write_bytes(audio)
        return path

    async def synthesize(
        self,
        text: str,
        work_dir: Path,
        estimated_duration: Optional[float] = None,
    ) -> NarrationTrack:
        """Synthesize narration for the whole script.

        Args:
            text: Narration script
            work_dir: Job-scoped directory for audio files
            estimated_duration: Fallback duration if the final file can't be probed

        Returns:
            NarrationTrack pointing at the final audio file

        Raises:
            SynthesisError: If any chunk fails; no partial track is returned
        """
        chunks = [c for c in split_for_speech(text, self.max_chars) if c.strip()]
        if not chunks:
            raise SynthesisError("Narration script is empty")

        work_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Synthesizing narration: {len(text)} chars in {len(chunks)} chunk(s)")

        if len(chunks) == 1:
            try:
                path = await self._synthesize_to(chunks[0], work_dir / "narration")
            except NarratedVideoError:
                raise
            except Exception as e:
                raise SynthesisError(f"Narration synthesis failed: {e}") from e

            duration = await self.media_tool.probe_duration(path)
            duration = duration or float(estimated_duration or 0.0)
            logger.info(f"Narration ready: {path.name}, {duration:.1f}s")
            return NarrationTrack(path=path, duration=duration, chunk_count=1, chunk_durations=[duration])

        chunk_paths: list[Path] = []
        manifest = work_dir / "narration_concat.txt"
        output: Optional[Path] = None
        try:
            for index, chunk in enumerate(chunks):
                logger.info(f"Synthesizing chunk {index + 1}/{len(chunks)} ({len(chunk)} chars)")
                try:
                    chunk_paths.append(
                        await self._synthesize_to(chunk, work_dir / f"narration_chunk_{index:03d}")
                    )
                except Exception as e:
                    raise SynthesisError(
                        f"Narration chunk {index + 1}/{len(chunks)} failed: {e}"
                    ) from e

            chunk_durations = [await self.media_tool.probe_duration(p) for p in chunk_paths]

            output = work_dir / f"narration{chunk_paths[0].suffix}"
            await self.media_tool.concat(chunk_paths, output, manifest)
        except Exception:
            if output is not None:
                _remove_files([output])
            raise
        finally:
            _remove_files([*chunk_paths, manifest])

        expected = sum(chunk_durations)
        duration = await self.media_tool.probe_duration(output) or expected
        duration = duration or float(estimated_duration or 0.0)

        if expected and abs(duration - expected) > DURATION_DRIFT_WARNING:
            logger.warning(
                f"Concatenated narration is {duration:.2f}s but chunks sum to {expected:.2f}s"
            )

        logger.info(f"Narration ready: {output.name}, {duration:.1f}s from {len(chunks)} chunks")
        return NarrationTrack(
            path=output,
            duration=duration,
            chunk_count=len(chunks),
            chunk_durations=chunk_durations,
        )
