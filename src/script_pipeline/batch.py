"""Batch Controller: run the chapter pipeline over a selection of chapters.

Chapters are processed strictly one at a time. A credit failure aborts the
remaining chapters; any other per-chapter failure is recorded and the batch
moves on. Newly assembled documents are merged over the previously stored
set and persisted once at the end.
"""

import inspect
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Union

from exceptions import ChapterGenerationError, CreditInsufficientError, ScriptPersistenceError
from .models import BatchResult, BatchStatus, ChapterText, ProgressUpdate, ScriptDocument
from .orchestrator import ChapterPipeline
from .services import ProgressSink, ScriptStore, report_notice, report_progress

logger = logging.getLogger(__name__)

# Either a fixed answer or a callback receiving the chapter numbers that already have scripts
RegenerateConfirmation = Union[bool, Callable[[List[int]], Union[bool, Awaitable[bool]]]]


def merge_script_sets(
    previous: Iterable[ScriptDocument],
    assembled: Dict[int, ScriptDocument]
) -> List[ScriptDocument]:
    """
    Union of previously stored and newly assembled documents, ordered by chapter.

    A newly assembled document replaces the stored one for the same chapter;
    stored documents for chapters not regenerated are kept untouched.
    """
    merged = {doc.chapter_number: doc for doc in previous}
    merged.update(assembled)
    return [merged[number] for number in sorted(merged)]


async def _confirm(confirm_regenerate: RegenerateConfirmation, chapter_numbers: List[int]) -> bool:
    if callable(confirm_regenerate):
        answer = confirm_regenerate(list(chapter_numbers))
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)
    return bool(confirm_regenerate)


class BatchController:
    """Drives ChapterPipeline over the selected chapters of one novel."""

    def __init__(
        self,
        pipeline: ChapterPipeline,
        store: ScriptStore,
        progress_sink: Optional[ProgressSink] = None
    ):
        self.pipeline = pipeline
        self.store = store
        self.progress_sink = progress_sink

    async def run(
        self,
        novel_id: str,
        chapters: List[ChapterText],
        selected_chapter_numbers: List[int],
        confirm_regenerate: RegenerateConfirmation = True
    ) -> BatchResult:
        """
        Generate scripts for the selected chapters and persist the merged set.

        Args:
            novel_id: Store key for the novel
            chapters: All available chapters
            selected_chapter_numbers: Chapters to process, in processing order
            confirm_regenerate: Whether chapters that already have scripts are
                regenerated (bool or callback, sync or async)

        Returns:
            BatchResult with per-chapter outcomes and the merged script set

        Raises:
            ScriptPersistenceError: If loading the stored set or saving the
                merged set fails (the error carries the result when saving)
        """
        try:
            previous = await self.store.load_existing_scripts(novel_id)
        except Exception as e:
            logger.error(f"Failed to load existing scripts for novel '{novel_id}': {e}")
            raise ScriptPersistenceError(f"Failed to load existing scripts: {e}") from e

        # Preserve selection order, drop duplicates
        selected = list(dict.fromkeys(selected_chapter_numbers))
        existing_numbers = {doc.chapter_number for doc in previous}
        skipped: List[int] = []

        with_existing = [number for number in selected if number in existing_numbers]
        if with_existing:
            if await _confirm(confirm_regenerate, with_existing):
                logger.info(f"Regenerating chapters with existing scripts: {with_existing}")
            else:
                logger.info(f"Keeping existing scripts for chapters {with_existing}")
                skipped.extend(with_existing)
                selected = [number for number in selected if number not in existing_numbers]

        by_number = {chapter.chapter_number: chapter for chapter in chapters}
        total = len(selected)
        documents: Dict[int, ScriptDocument] = {}
        completed: List[int] = []
        failed: List[int] = []
        missing: List[int] = []
        abort_reason: Optional[str] = None

        logger.info("=" * 60)
        logger.info(f"Script batch for novel '{novel_id}': {total} chapter(s) {selected}")
        logger.info("=" * 60)

        for number in selected:
            chapter = by_number.get(number)
            if chapter is None:
                logger.warning(f"Chapter {number} not found; skipping")
                missing.append(number)
                continue

            try:
                run = await self.pipeline.run(chapter)
            except CreditInsufficientError as e:
                logger.error(f"Batch aborted at chapter {number}: {e}")
                abort_reason = e.reason
                break
            except ChapterGenerationError as e:
                logger.error(f"Chapter {number} failed: {e}")
                failed.append(number)
                continue

            documents[number] = run.document
            completed.append(number)
            report_progress(
                self.progress_sink,
                ProgressUpdate(
                    phase="batch",
                    percent=100.0 * len(completed) / total,
                    message=f"{len(completed)}/{total} chapters completed",
                )
            )

        if abort_reason is not None:
            status = BatchStatus.ABORTED
        elif failed or missing:
            status = BatchStatus.PARTIAL
        else:
            status = BatchStatus.COMPLETED

        result = BatchResult(
            status=status,
            total_chapters=total,
            documents=documents,
            script_set=merge_script_sets(previous, documents),
            completed_chapters=completed,
            failed_chapters=failed,
            skipped_chapters=skipped + missing,
            abort_reason=abort_reason,
        )

        if documents:
            try:
                await self.persist(novel_id, result)
            except Exception as e:
                report_notice(self.progress_sink, False, f"Scripts generated but saving failed: {e}")
                raise ScriptPersistenceError(f"Failed to save scripts for novel '{novel_id}': {e}", result) from e
        else:
            logger.info("No new scripts generated; store left untouched")

        report_notice(self.progress_sink, status != BatchStatus.ABORTED, f"Script generation {result.summary()}")
        logger.info(
            f"Batch {status.value}: {len(completed)} completed, {len(failed)} failed, "
            f"{len(result.skipped_chapters)} skipped"
        )
        return result

    async def persist(self, novel_id: str, result: BatchResult) -> BatchResult:
        """
        Save a result's merged script set; safe to call again after a failure.

        Raises:
            Exception: Whatever the store raises
        """
        await self.store.save_scripts(novel_id, result.script_set)
        result.saved = True
        logger.info(f"Persisted {len(result.script_set)} script(s) for novel '{novel_id}'")
        return result
