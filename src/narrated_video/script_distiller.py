"""Script distiller: reduces an article to a duration-bounded narration script."""

import logging
import math
import re

from narrated_video.errors import EmptyInputError, GenerationError
from narrated_video.models import NarrationScript
from services.prompts import SCRIPT_DISTILLER_V1, strip_markdown_code_blocks
from services.text_providers import TextProvider

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 5
MAX_DURATION_MINUTES = 8
DEFAULT_WORDS_PER_MINUTE = 150
# ElevenLabs accepts 10,000 characters per request
DEFAULT_MAX_CHARS = 9500
# A sentence boundary is only used for a cut if it keeps this share of the limit
SENTENCE_CUT_RATIO = 0.9

_CLEANUP_PATTERNS = [
    (re.compile(r"\[VISUAL:.*?\]", re.IGNORECASE | re.DOTALL), ""),
    (re.compile(r"\[PAUSE\]", re.IGNORECASE), "..."),
    (re.compile(r"\[.*?\]", re.DOTALL), ""),
    (re.compile(r"^\s*#+\s*", re.MULTILINE), ""),
    (re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+", re.MULTILINE), ""),
    (re.compile(r"(\*\*|__)(.+?)\1"), r"\2"),
    (re.compile(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])"), r"\1"),
    (re.compile(r"[ \t]+"), " "),
    (re.compile(r" *\n *"), "\n"),
    (re.compile(r"\n{3,}"), "\n\n"),
]

_SENTENCE_END = re.compile(r"[.!?]")


def count_words(text: str) -> int:
    return len(text.split())


def estimate_duration(text: str, words_per_minute: int = DEFAULT_WORDS_PER_MINUTE) -> int:
    """Estimate spoken duration in whole seconds."""
    return math.ceil(count_words(text) / words_per_minute * 60)


def clean_script(text: str) -> str:
    """Strip structural markers a generator may emit.

    Removes bracketed cues ([VISUAL: ...], [INTRODUCTION], ...), turns
    [PAUSE] into an ellipsis, and drops markdown headers, bullets and
    emphasis markers.
    """
    for pattern, replacement in _CLEANUP_PATTERNS:
        text = pattern.sub(replacement, text)
    return text.strip()


def _last_sentence_end(text: str) -> int:
    """Index just past the last sentence terminator in text, or -1."""
    last = -1
    for match in _SENTENCE_END.finditer(text):
        last = match.end()
    return last


def truncate_script(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Bring text under a hard character ceiling.

    Cuts at the last sentence end when it falls inside the final 10% of the
    ceiling, otherwise hard-cuts and appends an ellipsis. The result is never
    longer than max_chars.
    """
    if len(text) <= max_chars:
        return text

    window = text[:max_chars]
    cut = _last_sentence_end(window)
    if cut > max_chars * SENTENCE_CUT_RATIO:
        return window[:cut].rstrip()

    return text[: max_chars - 3].rstrip() + "..."


def enforce_word_budget(text: str, max_words: int) -> str:
    """Trim text to at most max_words words, preferring a sentence boundary."""
    words = list(re.finditer(r"\S+", text))
    if len(words) <= max_words:
        return text

    prefix = text[: words[max_words - 1].end()]
    cut = _last_sentence_end(prefix)
    if cut > len(prefix) * SENTENCE_CUT_RATIO:
        return prefix[:cut].rstrip()

    # Hard cut leaves room for the ellipsis inside the budget
    return text[: words[max_words - 2].end()].rstrip(" ,;:") + "..."


def clamp_duration_minutes(minutes: float) -> float:
    return min(max(minutes, MIN_DURATION_MINUTES), MAX_DURATION_MINUTES)


class ScriptDistiller:
    """Rewrites a long article into narration that fits the video length."""

    def __init__(
        self,
        provider: TextProvider,
        words_per_minute: int = DEFAULT_WORDS_PER_MINUTE,
        max_chars: int = DEFAULT_MAX_CHARS,
    ):
        self.provider = provider
        self.words_per_minute = words_per_minute
        self.max_chars = max_chars

    async def distill(
        self,
        article: str,
        topic: str,
        max_duration_minutes: float = MAX_DURATION_MINUTES,
    ) -> NarrationScript:
        """Produce a narration script for an article.

        Args:
            article: Full article text
            topic: Article topic, used to focus the rewrite
            max_duration_minutes: Requested length, clamped to 5-8 minutes

        Returns:
            NarrationScript within both the word budget and the character ceiling

        Raises:
            EmptyInputError: If the article is empty
            GenerationError: If the provider fails or returns nothing usable
        """
        if not article or not article.strip():
            raise EmptyInputError("Article text is empty")

        minutes = clamp_duration_minutes(max_duration_minutes)
        max_words = int(minutes * self.words_per_minute)

        logger.info(
            f"Distilling script: topic='{topic[:60]}', {count_words(article)} article words, "
            f"budget={max_words} words / {self.max_chars} chars"
        )

        prompt = SCRIPT_DISTILLER_V1.format(
            topic=topic or "the article",
            duration_minutes=f"{minutes:g}",
            max_words=max_words,
            article=article.strip(),
        )

        try:
            raw = await self.provider.generate(prompt, temperature=0.7)
        except Exception as e:
            # Retries already happened inside the provider; the script is required
            logger.error(f"Script generation failed ({self.provider.get_provider_name()}): {e}")
            raise GenerationError(f"Script generation failed: {e}") from e

        text = clean_script(strip_markdown_code_blocks(raw))
        if not text:
            raise GenerationError("Script generation returned no narration text")

        original_length = len(text)
        text = enforce_word_budget(text, max_words)
        text = truncate_script(text, self.max_chars)
        truncated = len(text) < original_length

        if truncated:
            logger.warning(
                f"Script trimmed from {original_length} to {len(text)} characters to fit limits"
            )

        script = NarrationScript(
            text=text,
            word_count=count_words(text),
            estimated_duration=estimate_duration(text, self.words_per_minute),
            truncated=truncated,
        )

        logger.info(
            f"Script ready: {script.word_count} words, {len(text)} chars, "
            f"~{script.estimated_duration}s"
        )
        return script
