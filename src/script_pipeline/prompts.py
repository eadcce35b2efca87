"""Prompt builders for the three generative calls of the script pipeline."""

from typing import List

from .config import settings
from .models import ChapterMeta, Segment


def _chapter_header(meta: ChapterMeta) -> str:
    return f"""Novel title: {meta.novel_title or 'Untitled'}
Chapter: {meta.chapter_number}
Chapter title: {meta.chapter_title or 'Untitled'}"""


def build_segmentation_prompt(chapter_text: str, desired_count: int, meta: ChapterMeta) -> str:
    """Ask for exactly `desired_count` contiguous pieces of the chapter."""
    return f"""
Split the following novel chapter into segments for screenplay adaptation.

{_chapter_header(meta)}

Requirements:
1. Produce EXACTLY {desired_count} segments, no more and no fewer.
2. Each segment is about {settings.SEGMENT_TARGET_CHARS} characters long, never shorter than
   {settings.SEGMENT_MIN_CHARS} and never longer than {settings.SEGMENT_MAX_CHARS} characters.
3. Segments are contiguous, in chapter order, and reuse the original wording.
4. Never cut inside a sentence or a line of dialogue; each segment is a complete unit of meaning.
5. Prefer cuts at scene changes, time jumps, and changes of action.

Output format: start each segment with its marker [SEGMENT 1], [SEGMENT 2], ... [SEGMENT {desired_count}],
separate segments with a blank line, and add no commentary.

Example:
[SEGMENT 1]
(first segment text)

[SEGMENT 2]
(second segment text)

Chapter text:
{chapter_text}
"""


def build_narration_prompt(segments: List[Segment], meta: ChapterMeta) -> str:
    """Ask for one continuous narration passage covering every segment."""
    count = len(segments)
    total_min = count * settings.NARRATION_MIN_CHARS
    total_max = count * settings.NARRATION_MAX_CHARS
    segment_list = "\n\n".join(f"Scene {seg.index + 1}: {seg.text}" for seg in segments)

    return f"""
Write voice-over narration for every scene of this chapter, from the point of view of a story narrator.

{_chapter_header(meta)}
Scene count: {count}

Scenes:
{segment_list}

Requirements:
1. Total length MUST be between {total_min} and {total_max} characters
   ({count} scenes x {settings.NARRATION_MIN_CHARS}-{settings.NARRATION_MAX_CHARS} characters each).
2. Summarize each scene's core action in order, about {settings.NARRATION_MIN_CHARS}-{settings.NARRATION_MAX_CHARS}
   characters per scene, each as one unbroken clause.
3. Name the subject once, then use pronouns; do not repeat the same name in consecutive scenes.
4. Do NOT use full stops, ellipses or any sentence-ending punctuation. Commas are allowed.
5. Output ONE continuous passage: no line breaks, no "Scene N:" labels,
   no character-count annotations such as "(21 chars)".

Return only the narration passage.
"""


def build_single_narration_prompt(segment: Segment, meta: ChapterMeta) -> str:
    """Ask for one narration unit for a single segment."""
    return f"""
Write voice-over narration for one scene, from the point of view of a story narrator.

{_chapter_header(meta)}
Scene: {segment.index + 1}

Scene text:
{segment.text}

Requirements:
- Between {settings.NARRATION_MIN_CHARS} and {settings.NARRATION_MAX_CHARS} characters; simplify if longer.
- Summarize the core action as one complete clause, no sentence-ending punctuation.
- No labels, no line breaks, no extra symbols.

Return only the narration.
"""


def build_scene_prompt(segment: Segment, narration: str, meta: ChapterMeta) -> str:
    """Ask for exactly one single-shot scene for a segment."""
    scene_number = segment.index + 1
    return f"""
Write a minimal screenplay scene for this novel segment, suitable for short video or storyboard production.

{_chapter_header(meta)}
Scene number: {scene_number}

Segment:
{segment.text}

Narration for this scene (context only, do not repeat it):
{narration}

Requirements:
1. Produce ONE scene only, containing exactly ONE shot.
2. The scene MUST start with the header [SCENE {scene_number}: <title>], where the title reads
   INT./EXT. - location - time of day (e.g. INT. - LIVING ROOM - DAY).
3. Follow the header with a single shot line that begins with the shot type label, one of
   WIDE SHOT:, MEDIUM SHOT: or CLOSE-UP:, then describes in one sentence the characters, action,
   expression and setting. Add a short line of dialogue only if the segment has one.
4. Cover only the content of this segment; stay faithful to its core event.

Example:
[SCENE {scene_number}: INT. - LIVING ROOM - DAY]
WIDE SHOT: Sunlight floods the living room as Ming looks up from his book, startled.
"""
