"""Script document stores: in-memory and one-JSON-file-per-novel."""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Union

from .models import SceneScript, ScriptDocument
from .scene_script import parse_script_scenes

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^\w\-.]+", re.UNICODE)


def _slugify(novel_id: str) -> str:
    slug = _UNSAFE_CHARS_RE.sub("_", novel_id.strip()).strip("._")
    return slug or "novel"


def _upgrade_legacy_entry(entry: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a stored entry that only carries a flat script into the scene list form.

    Older saves kept just `script_content`; scenes are recovered by splitting
    that text on its scene headers.
    """
    if entry.get("scenes") or not entry.get("script_content"):
        return entry

    upgraded = {k: v for k, v in entry.items() if k != "script_content"}
    upgraded["scenes"] = [
        SceneScript(
            segment_index=i,
            scene_number=i + 1,
            title=title,
            body=body,
        ).model_dump(mode="json")
        for i, (title, body) in enumerate(parse_script_scenes(entry["script_content"]))
        if body.strip()
    ]
    logger.info(
        f"Upgraded legacy script for chapter {entry.get('chapter_number')} "
        f"({len(upgraded['scenes'])} scenes)"
    )
    return upgraded


class InMemoryScriptStore:
    """Script store backed by a dict; copies on the way in and out."""

    def __init__(self):
        self._scripts: Dict[str, List[ScriptDocument]] = {}
        self.save_count = 0

    async def load_existing_scripts(self, novel_id: str) -> List[ScriptDocument]:
        return [doc.model_copy(deep=True) for doc in self._scripts.get(novel_id, [])]

    async def save_scripts(self, novel_id: str, documents: List[ScriptDocument]) -> None:
        self._scripts[novel_id] = [doc.model_copy(deep=True) for doc in documents]
        self.save_count += 1


class JsonScriptStore:
    """
    Script store writing one JSON file per novel under `base_dir`.

    File layout:
        {"novel_id": ..., "saved_at": ..., "scripts": [ScriptDocument, ...]}
    """

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)

    def path_for(self, novel_id: str) -> Path:
        return self.base_dir / f"{_slugify(novel_id)}.json"

    async def load_existing_scripts(self, novel_id: str) -> List[ScriptDocument]:
        """
        Load every stored document for a novel.

        Returns:
            Documents in stored order; empty when nothing has been saved yet

        Raises:
            IOError: If the file exists but cannot be read or parsed
        """
        filepath = self.path_for(novel_id)
        if not filepath.exists():
            logger.debug(f"No saved scripts for novel '{novel_id}' at {filepath}")
            return []

        try:
            payload = json.loads(filepath.read_text(encoding="utf-8"))
            documents = [
                ScriptDocument.model_validate(_upgrade_legacy_entry(entry))
                for entry in payload.get("scripts", [])
            ]
        except Exception as e:
            logger.error(f"Failed to load scripts from {filepath}: {e}")
            raise IOError(f"Failed to load scripts from {filepath}: {e}") from e

        logger.info(f"Loaded {len(documents)} existing script(s) for novel '{novel_id}'")
        return documents

    async def save_scripts(self, novel_id: str, documents: List[ScriptDocument]) -> None:
        """
        Replace the stored script set for a novel.

        Raises:
            IOError: If the file write fails
        """
        filepath = self.path_for(novel_id)
        payload = {
            "novel_id": novel_id,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "scripts": [doc.model_dump(mode="json") for doc in documents],
        }

        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            filepath.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
            logger.info(f"Saved {len(documents)} script(s) for novel '{novel_id}' to {filepath}")
        except Exception as e:
            logger.error(f"Failed to save scripts to {filepath}: {e}")
            raise IOError(f"Failed to save scripts to {filepath}: {e}") from e
