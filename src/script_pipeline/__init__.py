"""Chapter-to-script pipeline.

Turns novel chapters into short-form video scripts, one single-shot scene
per bounded-length segment, each paired with a 20-22 character narration.

Pipeline (per chapter):
    credit gate -> segmentation -> narration -> scene loop -> ScriptDocument

Usage:
    from script_pipeline import BatchController, ChapterPipeline, JsonScriptStore
    from util.gemini import GeminiTextService
"""

from .models import (
    BatchResult,
    BatchStatus,
    ChapterMeta,
    ChapterPhase,
    ChapterText,
    NarrationUnit,
    SceneScript,
    SceneStatus,
    ScriptDocument,
    Segment,
)
from .segmenter import Segmenter, compute_scene_count, segment_fallback
from .narration import NarrationSynthesizer
from .scene_script import SceneScriptGenerator, parse_script_scenes
from .orchestrator import ChapterPipeline, ChapterRun
from .batch import BatchController, merge_script_sets
from .services import InMemoryCreditLedger, LoggingProgressSink
from .stores import InMemoryScriptStore, JsonScriptStore

__all__ = [
    # Models
    "BatchResult",
    "BatchStatus",
    "ChapterMeta",
    "ChapterPhase",
    "ChapterText",
    "NarrationUnit",
    "SceneScript",
    "SceneStatus",
    "ScriptDocument",
    "Segment",
    # Stages
    "Segmenter",
    "compute_scene_count",
    "segment_fallback",
    "NarrationSynthesizer",
    "SceneScriptGenerator",
    "parse_script_scenes",
    # Orchestration
    "ChapterPipeline",
    "ChapterRun",
    "BatchController",
    "merge_script_sets",
    # Collaborators
    "InMemoryCreditLedger",
    "LoggingProgressSink",
    "InMemoryScriptStore",
    "JsonScriptStore",
]
