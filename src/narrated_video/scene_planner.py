"""Scene planner: segments a narration script into ordered, timed scenes.

The generative plan is preferred; when it fails or cannot be parsed the
planner falls back to a deterministic sentence split, so planning itself
never fails a job.
"""

import json
import logging
import math
import re
from dataclasses import replace

from narrated_video.models import Scene
from services.prompts import SCENE_PLANNER_V1, extract_json_block
from services.text_providers import TextProvider

logger = logging.getLogger(__name__)

DEFAULT_SCENE_DURATION = 6.0
PLANNED_MIN_SECONDS = 5.0
PLANNED_MAX_SECONDS = 8.0
MAX_KEYWORDS = 3
MIN_KEYWORDS = 2

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_WORD = re.compile(r"[A-Za-z0-9][A-Za-z0-9'\-]*")


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text.strip()) if s.strip()]


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Pick search keywords from text: distinct words longer than 4 characters."""
    keywords: list[str] = []
    for word in _WORD.findall(text):
        word = word.lower().strip("'-")
        if len(word) > 4 and word not in keywords:
            keywords.append(word)
            if len(keywords) == limit:
                break
    return keywords


def _split_words(text: str, parts: int) -> list[str]:
    """Divide text into `parts` consecutive word groups of near-equal size."""
    words = text.split()
    base, extra = divmod(len(words), parts)
    groups = []
    index = 0
    for i in range(parts):
        size = base + (1 if i < extra else 0)
        groups.append(" ".join(words[index : index + size]))
        index += size
    return groups


def renumber(scenes: list[Scene]) -> list[Scene]:
    """Assign sequential ordinals (from 1) and cumulative start offsets."""
    offset = 0.0
    result = []
    for ordinal, scene in enumerate(scenes, start=1):
        result.append(replace(scene, ordinal=ordinal, start=offset))
        offset += scene.duration
    return result


def fallback_scenes(script: str, max_scenes: int = 20) -> list[Scene]:
    """Deterministic plan: sentences grouped evenly into at most max_scenes scenes."""
    sentences = split_sentences(script) or [script.strip()]
    count = min(len(sentences), max_scenes)

    base, extra = divmod(len(sentences), count)
    scenes = []
    index = 0
    for i in range(count):
        size = base + (1 if i < extra else 0)
        narration = " ".join(sentences[index : index + size])
        index += size

        keywords = extract_keywords(narration)
        if not keywords:
            keywords = [w.lower() for w in _WORD.findall(narration)[:MIN_KEYWORDS]]

        scenes.append(
            Scene(
                ordinal=i + 1,
                narration=narration,
                keywords=keywords,
                duration=DEFAULT_SCENE_DURATION,
            )
        )

    return renumber(scenes)


def _coerce_keywords(value, narration: str) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        value = []

    keywords = []
    for item in value:
        if isinstance(item, str) and item.strip() and item.strip().lower() not in keywords:
            keywords.append(item.strip().lower())

    keywords = keywords[:MAX_KEYWORDS]
    if len(keywords) < MIN_KEYWORDS:
        for word in extract_keywords(narration, limit=MAX_KEYWORDS + len(keywords)):
            if word not in keywords:
                keywords.append(word)
            if len(keywords) == MIN_KEYWORDS:
                break
    return keywords


def _coerce_duration(value) -> float:
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return DEFAULT_SCENE_DURATION
    if math.isnan(duration) or duration <= 0:
        return DEFAULT_SCENE_DURATION
    return min(max(duration, PLANNED_MIN_SECONDS), PLANNED_MAX_SECONDS)


def parse_scene_plan(raw: str, max_scenes: int = 20) -> list[Scene]:
    """Parse and validate a generated scene list.

    Accepts a bare JSON array or an object with a "scenes" array.

    Raises:
        ValueError: If the response holds no usable scene
    """
    try:
        data = json.loads(extract_json_block(raw))
    except json.JSONDecodeError as e:
        raise ValueError(f"Scene plan is not valid JSON: {e}") from e

    if isinstance(data, dict):
        data = data.get("scenes")
    if not isinstance(data, list):
        raise ValueError("Scene plan is not a list")

    scenes = []
    for item in data:
        if not isinstance(item, dict):
            continue
        narration = str(item.get("narration") or "").strip()
        if not narration:
            continue
        keywords = _coerce_keywords(item.get("keywords"), narration)
        if not keywords:
            continue
        scenes.append(
            Scene(
                ordinal=len(scenes) + 1,
                narration=narration,
                keywords=keywords,
                duration=_coerce_duration(item.get("duration")),
            )
        )
        if len(scenes) == max_scenes:
            break

    if not scenes:
        raise ValueError("Scene plan contains no valid scenes")

    return renumber(scenes)


def reconcile_durations(
    scenes: list[Scene],
    target_total: float,
    tolerance: float = 5.0,
    min_seconds: float = 2.0,
    max_seconds: float = 15.0,
) -> list[Scene]:
    """Fit scene durations to a target total.

    When the planned sum is off by more than `tolerance`, every duration is
    scaled by target/sum. Scaled scenes longer than `max_seconds` are split
    into equal adjacent parts sharing keywords; scenes shorter than
    `min_seconds` are raised to it, taking the difference proportionally from
    scenes with room above the minimum. The total is preserved by both steps.
    Ordinals are renumbered and start offsets recomputed.

    Returns:
        New list of scenes; the input is not modified
    """
    if not scenes:
        return []

    total = sum(s.duration for s in scenes)
    if total <= 0:
        scenes = [replace(s, duration=target_total / len(scenes)) for s in scenes]
    elif abs(total - target_total) > tolerance:
        factor = target_total / total
        logger.info(
            f"Scaling {len(scenes)} scene durations by {factor:.3f} "
            f"({total:.1f}s planned, {target_total:.1f}s target)"
        )
        scenes = [replace(s, duration=s.duration * factor) for s in scenes]

    split: list[Scene] = []
    for scene in scenes:
        if scene.duration <= max_seconds:
            split.append(scene)
            continue
        parts = math.ceil(scene.duration / max_seconds)
        for narration in _split_words(scene.narration, parts):
            split.append(
                replace(
                    scene,
                    narration=narration,
                    keywords=list(scene.keywords),
                    duration=scene.duration / parts,
                )
            )

    deficit = sum(min_seconds - s.duration for s in split if s.duration < min_seconds)
    if deficit > 0:
        headroom = sum(s.duration - min_seconds for s in split if s.duration > min_seconds)
        if headroom >= deficit:
            split = [
                replace(
                    s,
                    duration=(
                        min_seconds
                        if s.duration <= min_seconds
                        else s.duration - deficit * (s.duration - min_seconds) / headroom
                    ),
                )
                for s in split
            ]
        else:
            # Too many scenes for the target: every scene gets an equal share
            total = sum(s.duration for s in split)
            logger.warning(
                f"{len(split)} scenes cannot all last {min_seconds}s within {total:.1f}s; "
                f"using equal durations"
            )
            split = [replace(s, duration=total / len(split)) for s in split]

    return renumber(split)


class ScenePlanner:
    """Turns a narration script into an ordered list of scenes."""

    def __init__(
        self,
        provider: TextProvider,
        min_scenes: int = 15,
        max_scenes: int = 20,
        min_seconds: float = 2.0,
        max_seconds: float = 15.0,
        tolerance: float = 5.0,
    ):
        self.provider = provider
        self.min_scenes = min_scenes
        self.max_scenes = max_scenes
        self.min_seconds = min_seconds
        self.max_seconds = max_seconds
        self.tolerance = tolerance

    async def plan(self, script: str, topic: str, target_duration: float) -> list[Scene]:
        """Plan scenes for a script and reconcile them to the target duration.

        Args:
            script: Narration script text
            topic: Video topic
            target_duration: Expected spoken duration of the script in seconds

        Returns:
            Ordered scenes with keywords and durations
        """
        prompt = SCENE_PLANNER_V1.format(
            topic=topic or "the article",
            min_scenes=self.min_scenes,
            max_scenes=self.max_scenes,
            script=script,
        )

        try:
            raw = await self.provider.generate(prompt, temperature=0.4, json_output=True)
            scenes = parse_scene_plan(raw, self.max_scenes)
            logger.info(f"Scene plan generated: {len(scenes)} scenes")
        except Exception as e:
            logger.warning(f"Scene planning failed, using sentence fallback: {e}")
            scenes = fallback_scenes(script, self.max_scenes)
            logger.info(f"Fallback scene plan: {len(scenes)} scenes")

        if len(scenes) < self.min_scenes:
            logger.debug(f"Plan has {len(scenes)} scenes, fewer than the preferred {self.min_scenes}")

        return self.reconcile(scenes, target_duration)

    def reconcile(
        self,
        scenes: list[Scene],
        target_total: float,
        tolerance: float | None = None,
    ) -> list[Scene]:
        """Reconcile durations using this planner's bounds."""
        return reconcile_durations(
            scenes,
            target_total,
            tolerance=self.tolerance if tolerance is None else tolerance,
            min_seconds=self.min_seconds,
            max_seconds=self.max_seconds,
        )
