"""Prompts module - centralized prompt templates for generative text calls.

Re-exports all prompt constants and utilities for easy importing:
    from services.prompts import PROMPT_VERSIONS, strip_markdown_code_blocks
    from services.prompts import SCRIPT_DISTILLER_V1, SCENE_PLANNER_V1
"""

from services.prompts._base import extract_json_block, strip_markdown_code_blocks
from services.prompts.narration import SCENE_PLANNER_V1, SCRIPT_DISTILLER_V1

# Prompt version identifiers, recorded in job metadata
# IMPORTANT: Increment these when prompts change
PROMPT_VERSIONS = {
    "distill_script": "v1",
    "plan_scenes": "v1",
}

__all__ = [
    # Utilities
    "extract_json_block",
    "strip_markdown_code_blocks",
    # Version tracking
    "PROMPT_VERSIONS",
    # Narration prompts
    "SCRIPT_DISTILLER_V1",
    "SCENE_PLANNER_V1",
]
