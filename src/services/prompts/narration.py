"""Narration prompt templates.

Contains prompts for:
- SCRIPT_DISTILLER_V1: Rewrite an article into a spoken narration script
- SCENE_PLANNER_V1: Break a narration script into timed, searchable scenes
"""

# Script Distiller v1 prompt
# Template placeholders: {topic}, {duration_minutes}, {max_words}, {article}
SCRIPT_DISTILLER_V1 = """You are a documentary narrator writing a voiceover for an educational video.

TASK
Rewrite the article below into a narration script about "{topic}" that takes about
{duration_minutes} minutes to read aloud.

HARD LIMITS
- At most {max_words} words.
- Plain spoken prose only. It is sent straight to a text-to-speech engine.
- No headings, no bullet points, no numbered lists, no markdown.
- No stage directions or bracketed cues such as [VISUAL: ...], [PAUSE] or [MUSIC].

WRITING RULES
1. Open with one sentence that states why the topic matters.
2. Keep the article's key facts, names and numbers. Drop tangents.
3. Short sentences. One idea per sentence. Write numbers the way they are spoken.
4. End with a one or two sentence summary of the main takeaway.

ARTICLE ↓
<<<
{article}
>>>

Return ONLY the narration text."""

# Scene Planner v1 prompt
# Template placeholders: {topic}, {min_scenes}, {max_scenes}, {script}
SCENE_PLANNER_V1 = """You are a video editor planning stock footage for a narrated video about "{topic}".

TASK
Split the narration below into {min_scenes}-{max_scenes} consecutive scenes. Every word of the
narration belongs to exactly one scene, in the original order.

For each scene provide:
- "narration": the exact excerpt of the narration covered by the scene
- "keywords": 2-3 concrete, filmable stock footage search terms (nouns and settings,
  e.g. "city skyline night", "laboratory microscope"), never abstract ideas
- "duration": seconds on screen, between 5 and 8

OUTPUT FORMAT (JSON)
Return ONLY a JSON array:
[
  {{"narration": "...", "keywords": ["...", "..."], "duration": 6}}
]

NARRATION ↓
<<<
{script}
>>>"""
