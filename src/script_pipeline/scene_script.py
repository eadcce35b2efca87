"""Generate one single-shot scene script per (segment, narration) pair."""

import logging
import re
from typing import List, Optional, Tuple

from exceptions import GenerationError
from .config import settings
from .models import ChapterMeta, NarrationUnit, SceneScript, SceneStatus, Segment
from .prompts import build_scene_prompt
from .services import TextGenerator, collect_text

logger = logging.getLogger(__name__)

# [SCENE 3: INT. - HALL - NIGHT] or 【场景3：内景-大厅-夜】
_SCENE_HEADER_RE = re.compile(r"(?:\[\s*SCENE\s*\d+\s*[:：]|【\s*场景\s*\d+\s*[:：])(.*?)[\]】]", re.IGNORECASE)

FULL_SCRIPT_TITLE = "Full Script"


def default_scene_title(scene_number: int) -> str:
    return f"Scene {scene_number}"


def extract_scene_title(script_text: str, scene_number: int) -> str:
    """Title from the first bracketed scene header, else "Scene <n>"."""
    match = _SCENE_HEADER_RE.search(script_text)
    if match:
        title = match.group(1).strip()
        if title:
            return title
    return default_scene_title(scene_number)


def failed_scene_body(scene_number: int) -> str:
    """Placeholder body recorded when scene generation fails."""
    return (
        f"[SCENE {scene_number}: Generation failed]\n"
        "Scene generation failed. Please regenerate this scene."
    )


def parse_script_scenes(script_text: str) -> List[Tuple[str, str]]:
    """
    Split a multi-scene script into (title, body) pairs on scene headers.

    Bodies exclude the header line. Text without any header is returned as a
    single scene titled "Full Script".

    Args:
        script_text: Full script text

    Returns:
        List of (title, body) tuples in order
    """
    matches = list(_SCENE_HEADER_RE.finditer(script_text))
    if not matches:
        logger.warning("No scene headers found; treating whole script as one scene")
        return [(FULL_SCRIPT_TITLE, script_text.strip())]

    scenes = []
    for i, match in enumerate(matches):
        start = match.end()
        end = matches[i + 1].start() if i < len(matches) - 1 else len(script_text)
        scenes.append((match.group(1).strip(), script_text[start:end].strip()))

    logger.debug(f"Parsed {len(scenes)} scenes from script text")
    return scenes


class SceneScriptGenerator:
    """Drives one generative call per segment to produce a scene block."""

    def __init__(
        self,
        generator: TextGenerator,
        timeout: Optional[float] = settings.GENERATION_TIMEOUT
    ):
        self.generator = generator
        self.timeout = timeout

    async def generate_scene(
        self,
        segment: Segment,
        narration: NarrationUnit,
        meta: ChapterMeta
    ) -> SceneScript:
        """
        Generate the scene for one segment.

        Failures never propagate: the scene is returned with status "failed"
        and a placeholder body.
        """
        scene_number = segment.index + 1
        prompt = build_scene_prompt(segment, narration.text, meta)

        try:
            body = (await collect_text(self.generator, prompt, timeout=self.timeout)).strip()
        except GenerationError as e:
            logger.warning(f"Chapter {meta.chapter_number}, scene {scene_number}: generation failed ({e})")
            return SceneScript(
                segment_index=segment.index,
                scene_number=scene_number,
                title=default_scene_title(scene_number),
                body=failed_scene_body(scene_number),
                status=SceneStatus.FAILED,
                segment_text=segment.text,
                narration=narration.text,
            )

        title = extract_scene_title(body, scene_number)
        logger.debug(f"Chapter {meta.chapter_number}, scene {scene_number}: '{title}' ({len(body)} chars)")
        return SceneScript(
            segment_index=segment.index,
            scene_number=scene_number,
            title=title,
            body=body,
            status=SceneStatus.SUCCESS,
            segment_text=segment.text,
            narration=narration.text,
        )
