"""Derive one narration unit per segment under strict character limits.

One aggregate generative call covers the whole chapter. Its response is
normalized, repaired to a total of [20N, 22N] characters, then cut into N
units of 20-22 characters each. Any call failure falls back to the first 21
characters of each segment.
"""

import logging
import re
from itertools import cycle, islice
from typing import Iterable, List, Optional

from exceptions import GenerationError, ValidationError
from .config import settings
from .models import ChapterMeta, NarrationUnit, Segment
from .prompts import build_narration_prompt, build_single_narration_prompt
from .services import TextGenerator, collect_text

logger = logging.getLogger(__name__)

# Marks that end a sentence; removed from narration
SENTENCE_END_MARKS = ("。", ".", "…")

# Mid-clause marks that are safe cut points between units
CUT_MARKS = frozenset("，！？；,!?;")

_COUNT_ANNOTATION_RE = re.compile(
    r"[（(]\s*\d+\s*(?:字|chars?|characters?)\s*[）)]",
    re.IGNORECASE
)

_LABEL_PREFIX_RES = (
    re.compile(r"^【.*?】"),
    re.compile(r"^\[.*?\]"),
    re.compile(r"^(?:输出|解说内容|解说|output|narration)\s*[:：]", re.IGNORECASE),
)


def normalize_narration(raw: str) -> str:
    """Strip sentence-ending punctuation, count annotations and line breaks."""
    text = raw.strip()
    text = _COUNT_ANNOTATION_RE.sub("", text)
    for mark in SENTENCE_END_MARKS:
        text = text.replace(mark, "")
    text = text.replace("\r", "").replace("\n", "")
    return text.strip()


def _pad(text: str, needed_length: int, sources: Iterable[str]) -> str:
    """
    Extend text to needed_length with characters drawn from sources in order.

    Sources are cycled when they are shorter than the deficit.

    Raises:
        ValidationError: If every source is empty
    """
    deficit = needed_length - len(text)
    if deficit <= 0:
        return text
    pool = "".join(sources)
    if not pool:
        raise ValidationError("No source text available to pad narration")
    return text + "".join(islice(cycle(pool), deficit))


def _find_cut(text: str, positions: Iterable[int]) -> Optional[int]:
    """
    Return the first cut point right after a CUT_MARKS character.

    Args:
        text: Text being split
        positions: Candidate mark indices in preference order

    Returns:
        Cut point (mark index + 1) inside the unit band, or None
    """
    for index in positions:
        cut = index + 1
        if not (settings.NARRATION_MIN_CHARS <= cut <= settings.NARRATION_MAX_CHARS):
            continue
        if 0 <= index < len(text) and text[index] in CUT_MARKS:
            return cut
    return None


def repair_total_length(text: str, segments: List[Segment]) -> str:
    """
    Force the aggregate narration into [20N, 22N] characters.

    Short text is topped up from the concatenated segment texts; long text is
    truncated to exactly 22N.
    """
    count = len(segments)
    total_min = count * settings.NARRATION_MIN_CHARS
    total_max = count * settings.NARRATION_MAX_CHARS

    if len(text) < total_min:
        logger.warning(f"Narration too short ({len(text)} < {total_min}); topping up from segments")
        return _pad(text, total_min, [seg.text for seg in segments])
    if len(text) > total_max:
        logger.warning(f"Narration too long ({len(text)} > {total_max}); truncating")
        return text[:total_max]
    return text


def distribute_narration(text: str, segments: List[Segment]) -> List[NarrationUnit]:
    """
    Cut the repaired aggregate narration into one unit per segment.

    Args:
        text: Narration of total length within [20N, 22N]
        segments: Segments in order

    Returns:
        N narration units, each 20-22 characters
    """
    count = len(segments)
    lo, hi = settings.NARRATION_MIN_CHARS, settings.NARRATION_MAX_CHARS
    window = settings.NARRATION_WINDOW
    chapter_sources = [seg.text for seg in segments]
    units: List[NarrationUnit] = []
    remaining = text

    for i, segment in enumerate(segments):
        units_left = count - i

        if units_left == 1:
            piece = remaining
            if len(piece) > hi:
                cut = _find_cut(piece, range(hi - 1, lo - 2, -1)) or hi
                piece = piece[:cut]
        else:
            target = max(lo, min(hi, len(remaining) // units_left))
            cut = _find_cut(remaining, range(target + window, target - window - 1, -1)) or target
            cut = min(cut, len(remaining))
            piece = remaining[:cut]
            remaining = remaining[cut:]

        if len(piece) < lo:
            logger.debug(f"Narration unit {i + 1} short ({len(piece)}); padding from segment")
            piece = _pad(piece, lo, [segment.text] + chapter_sources)

        units.append(NarrationUnit(segment_index=segment.index, text=piece))

    return units


def fallback_narrations(segments: List[Segment]) -> List[NarrationUnit]:
    """First 21 characters of each segment (padded from the chapter if short)."""
    chapter_sources = [seg.text for seg in segments]
    units = []
    for segment in segments:
        text = segment.text[:settings.NARRATION_FALLBACK_CHARS]
        text = _pad(text, settings.NARRATION_FALLBACK_CHARS, [segment.text] + chapter_sources)
        units.append(NarrationUnit(segment_index=segment.index, text=text))
    return units


def _clean_single(raw: str) -> str:
    text = raw.strip()
    for pattern in _LABEL_PREFIX_RES:
        text = pattern.sub("", text).strip()
    return text.replace("\n", "")


class NarrationSynthesizer:
    """Builds the narration track for a chapter's segments."""

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        timeout: Optional[float] = settings.GENERATION_TIMEOUT,
        single_timeout: Optional[float] = settings.SINGLE_NARRATION_TIMEOUT
    ):
        """
        Args:
            generator: Text generation service; None means fallback only
            timeout: Seconds allowed for the aggregate call
            single_timeout: Seconds allowed for a single-unit call
        """
        self.generator = generator
        self.timeout = timeout
        self.single_timeout = single_timeout

    async def synthesize(
        self,
        segments: List[Segment],
        meta: Optional[ChapterMeta] = None
    ) -> List[NarrationUnit]:
        """
        Produce exactly one 20-22 character narration unit per segment.

        Raises:
            ValidationError: If segments is empty
        """
        if not segments:
            raise ValidationError("Cannot synthesize narration for zero segments")

        meta = meta or ChapterMeta(chapter_number=0)

        if self.generator is None:
            return fallback_narrations(segments)

        prompt = build_narration_prompt(segments, meta)
        try:
            raw = await collect_text(self.generator, prompt, timeout=self.timeout)
        except GenerationError as e:
            logger.warning(f"Chapter {meta.chapter_number}: narration call failed ({e}); using fallback")
            return fallback_narrations(segments)

        logger.debug(f"Chapter {meta.chapter_number}: raw narration ({len(raw)} chars): {raw!r}")
        text = repair_total_length(normalize_narration(raw), segments)
        units = distribute_narration(text, segments)

        logger.info(
            f"Chapter {meta.chapter_number}: {len(units)} narration units, "
            f"{sum(len(u.text) for u in units)} chars total"
        )
        return units

    async def synthesize_single(
        self,
        segment: Segment,
        meta: Optional[ChapterMeta] = None
    ) -> NarrationUnit:
        """
        Produce one narration unit for a single segment.

        The call is cancelled after `single_timeout` seconds; a timeout or any
        failure substitutes the segment's first 22 characters.
        """
        meta = meta or ChapterMeta(chapter_number=0)
        hi = settings.NARRATION_MAX_CHARS

        def fallback() -> NarrationUnit:
            text = _pad(segment.text[:hi], hi, [segment.text])
            return NarrationUnit(segment_index=segment.index, text=text)

        if self.generator is None:
            return fallback()

        prompt = build_single_narration_prompt(segment, meta)
        try:
            raw = await collect_text(self.generator, prompt, timeout=self.single_timeout)
        except GenerationError as e:
            logger.warning(f"Scene {segment.index + 1}: single narration failed ({e}); using fallback")
            return fallback()

        text = _clean_single(raw)
        if len(text) < settings.NARRATION_MIN_CHARS:
            logger.warning(f"Scene {segment.index + 1}: narration too short ({len(text)}); using segment text")
            return fallback()
        if len(text) > hi:
            text = text[:hi]
        return NarrationUnit(segment_index=segment.index, text=text)
