"""Per-chapter pipeline: credit gate, segmentation, narration, scene loop, assembly.

Each chapter moves through an explicit state machine:

    PENDING -> CREDIT_CHECK -> SEGMENTING -> NARRATING -> SCENE_LOOP -> ASSEMBLED

with ABORTED reachable from CREDIT_CHECK (fatal to the batch) and FAILED from
any working state. Every transition is one awaited step; all generative calls
run strictly in sequence.
"""

import logging
from typing import Dict, List, Optional, Set

from pydantic import ValidationError as ModelValidationError

from exceptions import (
    ChapterGenerationError,
    CreditInsufficientError,
    ValidationError,
)
from .config import settings
from .models import (
    ChapterMeta,
    ChapterPhase,
    ChapterText,
    CreditResult,
    NarrationUnit,
    ProgressUpdate,
    SceneScript,
    ScriptDocument,
    Segment,
)
from .narration import NarrationSynthesizer
from .scene_script import SceneScriptGenerator
from .segmenter import Segmenter, compute_scene_count
from .services import CreditLedger, ProgressSink, TextGenerator, report_progress

logger = logging.getLogger(__name__)

_TRANSITIONS: Dict[ChapterPhase, Set[ChapterPhase]] = {
    ChapterPhase.PENDING: {ChapterPhase.CREDIT_CHECK, ChapterPhase.FAILED},
    ChapterPhase.CREDIT_CHECK: {ChapterPhase.SEGMENTING, ChapterPhase.ABORTED},
    ChapterPhase.SEGMENTING: {ChapterPhase.NARRATING, ChapterPhase.FAILED},
    ChapterPhase.NARRATING: {ChapterPhase.SCENE_LOOP, ChapterPhase.FAILED},
    ChapterPhase.SCENE_LOOP: {ChapterPhase.ASSEMBLED, ChapterPhase.FAILED},
    ChapterPhase.ASSEMBLED: set(),
    ChapterPhase.ABORTED: set(),
    ChapterPhase.FAILED: set(),
}

# Chapter-level percent reported on entering each phase
_PHASE_PERCENT = {
    ChapterPhase.CREDIT_CHECK: 0.0,
    ChapterPhase.SEGMENTING: 5.0,
    ChapterPhase.NARRATING: 20.0,
    ChapterPhase.SCENE_LOOP: 30.0,
    ChapterPhase.ASSEMBLED: 100.0,
}


class ChapterRun:
    """Mutable state of one chapter moving through the pipeline."""

    def __init__(self, chapter: ChapterText, meta: ChapterMeta):
        self.chapter = chapter
        self.meta = meta
        self.phase = ChapterPhase.PENDING
        self.history: List[ChapterPhase] = [ChapterPhase.PENDING]
        self.segments: List[Segment] = []
        self.narrations: List[NarrationUnit] = []
        self.scenes: List[SceneScript] = []
        self.document: Optional[ScriptDocument] = None
        self.credit: Optional[CreditResult] = None
        self.error: Optional[str] = None

    def advance(self, phase: ChapterPhase) -> None:
        """Move to the next phase, rejecting transitions the state machine forbids."""
        if phase not in _TRANSITIONS[self.phase]:
            raise RuntimeError(f"Illegal chapter transition {self.phase.value} -> {phase.value}")
        self.phase = phase
        self.history.append(phase)


class ChapterPipeline:
    """Runs one chapter from raw text to an assembled ScriptDocument."""

    def __init__(
        self,
        generator: TextGenerator,
        credit_ledger: CreditLedger,
        user_id: str,
        novel_title: str = "",
        progress_sink: Optional[ProgressSink] = None,
        segmenter: Optional[Segmenter] = None,
        narrator: Optional[NarrationSynthesizer] = None,
        scene_generator: Optional[SceneScriptGenerator] = None,
        feature_key: str = settings.CREDIT_FEATURE_KEY
    ):
        """
        Args:
            generator: Text generation service shared by all three stages
            credit_ledger: Ledger charged once per chapter before any generation
            user_id: Account charged by the credit gate
            novel_title: Included in every prompt
            progress_sink: Optional observer for phase updates
            segmenter: Override for the segmentation stage
            narrator: Override for the narration stage
            scene_generator: Override for the scene stage
            feature_key: Ledger feature key
        """
        self.credit_ledger = credit_ledger
        self.user_id = user_id
        self.novel_title = novel_title
        self.progress_sink = progress_sink
        self.segmenter = segmenter or Segmenter(generator)
        self.narrator = narrator or NarrationSynthesizer(generator)
        self.scene_generator = scene_generator or SceneScriptGenerator(generator)
        self.feature_key = feature_key

    def _enter(self, run: ChapterRun, phase: ChapterPhase, message: Optional[str] = None) -> None:
        run.advance(phase)
        if phase in _PHASE_PERCENT:
            self._emit(run, _PHASE_PERCENT[phase], message)

    def _emit(self, run: ChapterRun, percent: float, message: Optional[str] = None) -> None:
        report_progress(
            self.progress_sink,
            ProgressUpdate(
                chapter_number=run.chapter.chapter_number,
                phase=run.phase.value,
                percent=percent,
                message=message,
            )
        )

    async def run(self, chapter: ChapterText) -> ChapterRun:
        """
        Process one chapter.

        Args:
            chapter: Chapter to script

        Returns:
            The finished ChapterRun (phase ASSEMBLED, document set)

        Raises:
            CreditInsufficientError: Credit gate rejected the chapter (batch must stop)
            ChapterGenerationError: The chapter cannot be processed (batch continues)
        """
        run = ChapterRun(chapter, ChapterMeta.from_chapter(chapter, self.novel_title))
        number = chapter.chapter_number

        if not chapter.content.strip():
            run.advance(ChapterPhase.FAILED)
            run.error = "chapter has no content"
            raise ChapterGenerationError(number, run.error)

        logger.info(f"Chapter {number} ('{chapter.title}'): starting, {len(chapter.content)} chars")

        await self._check_credit(run)

        try:
            await self._segment(run)
            await self._narrate(run)
            await self._scene_loop(run)
            self._assemble(run)
        except (ValidationError, ModelValidationError) as e:
            # Stage output the models reject fails this chapter only
            run.advance(ChapterPhase.FAILED)
            run.error = str(e)
            raise ChapterGenerationError(number, str(e)) from e

        return run

    async def _check_credit(self, run: ChapterRun) -> None:
        number = run.chapter.chapter_number
        self._enter(run, ChapterPhase.CREDIT_CHECK)

        note = f"Generate script for chapter {number}"
        try:
            result = await self.credit_ledger.deduct(self.user_id, self.feature_key, note)
        except Exception as e:
            logger.error(f"Chapter {number}: credit ledger call failed: {e}")
            result = CreditResult(success=False, error=f"credit ledger unavailable: {e}")
        run.credit = result

        if not result.success:
            run.advance(ChapterPhase.ABORTED)
            run.error = result.error or "insufficient credit"
            logger.error(f"Chapter {number}: credit check failed ({run.error})")
            raise CreditInsufficientError(number, run.error, result.balance)

        logger.info(f"Chapter {number}: credit deducted, balance {result.balance}")

    async def _segment(self, run: ChapterRun) -> None:
        desired_count = compute_scene_count(len(run.chapter.content))
        self._enter(run, ChapterPhase.SEGMENTING, f"{desired_count} segments requested")
        run.segments = await self.segmenter.segment(run.chapter.content, desired_count, run.meta)
        logger.info(f"Chapter {run.chapter.chapter_number}: {len(run.segments)} segments")

    async def _narrate(self, run: ChapterRun) -> None:
        self._enter(run, ChapterPhase.NARRATING)
        run.narrations = await self.narrator.synthesize(run.segments, run.meta)

    async def _scene_loop(self, run: ChapterRun) -> None:
        self._enter(run, ChapterPhase.SCENE_LOOP)
        total = len(run.segments)
        start = _PHASE_PERCENT[ChapterPhase.SCENE_LOOP]
        span = _PHASE_PERCENT[ChapterPhase.ASSEMBLED] - start - 5.0

        for i, (segment, narration) in enumerate(zip(run.segments, run.narrations)):
            scene = await self.scene_generator.generate_scene(segment, narration, run.meta)
            run.scenes.append(scene)
            self._emit(run, start + span * (i + 1) / total, f"scene {i + 1}/{total}: {scene.status.value}")

    def _assemble(self, run: ChapterRun) -> None:
        run.document = ScriptDocument(
            chapter_number=run.chapter.chapter_number,
            chapter_title=run.chapter.title,
            scenes=run.scenes,
        )
        failed = run.document.failed_scene_count
        self._enter(run, ChapterPhase.ASSEMBLED, f"{len(run.scenes)} scenes, {failed} failed")
        logger.info(
            f"Chapter {run.chapter.chapter_number}: assembled {len(run.scenes)} scenes "
            f"({failed} failed), {len(run.document.full_text)} chars"
        )
