"""Helpers for cleaning generated text before it is parsed or narrated."""

import re

# ``` or ```json / ```text etc. at the very start, ``` at the very end
_OPENING_FENCE = re.compile(r"^```[\w-]*[ \t]*\n?")
_CLOSING_FENCE = re.compile(r"\n?```\s*$")


def strip_markdown_code_blocks(text: str) -> str:
    """Strip a markdown code fence wrapped around a model response.

    Args:
        text: Raw text that may be wrapped in ``` fences

    Returns:
        Text without the surrounding fence
    """
    text = text.strip()
    text = _OPENING_FENCE.sub("", text, count=1)
    text = _CLOSING_FENCE.sub("", text, count=1)
    return text.strip()


def extract_json_block(text: str) -> str:
    """Return the JSON array or object inside a model response.

    Models sometimes add a sentence before or after the JSON even when asked
    not to. Everything outside the outermost brackets is dropped.
    """
    text = strip_markdown_code_blocks(text)
    starts = [i for i in (text.find("["), text.find("{")) if i != -1]
    if not starts:
        return text

    start = min(starts)
    closing = "]" if text[start] == "[" else "}"
    end = text.rfind(closing)
    if end <= start:
        return text[start:]
    return text[start : end + 1]
