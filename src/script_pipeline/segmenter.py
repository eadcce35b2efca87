"""Split one chapter into an exact number of bounded-length segments.

Primary path asks the generative service for marked pieces; any failure or a
piece count other than the requested one falls back to the deterministic
sentence packer in `segment_fallback`.
"""

import logging
import math
import re
from typing import List, Optional

from exceptions import GenerationError, ValidationError
from .config import settings
from .models import ChapterMeta, Segment
from .prompts import build_segmentation_prompt
from .services import TextGenerator, collect_text

logger = logging.getLogger(__name__)

# Sentence terminals (CJK and ASCII), with any closing quotes/brackets kept on the sentence
_SENTENCE_RE = re.compile(r"[^。！？…!?.]*(?:[。！？…!?.]+[”’\"'」』）)]*|$)")

_SEGMENT_MARKER = r"(?:\[\s*SEGMENT\s*\d+\s*\]|【\s*片段\s*\d+\s*】)"
_SEGMENT_PIECE_RE = re.compile(
    _SEGMENT_MARKER + r"\s*([\s\S]*?)(?=" + _SEGMENT_MARKER + r"|$)",
    re.IGNORECASE
)


def compute_scene_count(content_length: int) -> int:
    """Number of segments to request for a chapter of the given length (no upper cap)."""
    return max(settings.MIN_SCENE_COUNT, math.ceil(content_length / settings.SEGMENT_TARGET_CHARS))


def split_sentences(text: str) -> List[str]:
    """
    Split text into complete sentences, keeping terminal punctuation attached.

    Surrounding whitespace is stripped from each sentence; a trailing fragment
    without a terminal is kept as its own sentence.

    Example:
        >>> split_sentences("他来了。她走了！然后呢")
        ['他来了。', '她走了！', '然后呢']
    """
    sentences = []
    for match in _SENTENCE_RE.finditer(text):
        sentence = match.group().strip()
        if sentence:
            sentences.append(sentence)
    return sentences


def redistribute_leftovers(pieces: List[str], leftovers: List[str]) -> List[str]:
    """
    Spread unconsumed sentences over existing pieces.

    Round-robin over the pieces, skipping any piece that would grow beyond
    max + overflow. Once every piece is at capacity, remaining sentences go to
    the currently shortest piece.

    Args:
        pieces: Segment texts (modified in place and returned)
        leftovers: Sentences in original order

    Returns:
        The same list of pieces
    """
    if not pieces:
        raise ValidationError("Cannot redistribute sentences into zero segments")

    limit = settings.SEGMENT_MAX_CHARS + settings.SEGMENT_OVERFLOW_CHARS
    pending = list(leftovers)
    position = 0

    while pending:
        sentence = pending[0]
        placed = False
        for _ in range(len(pieces)):
            candidate = position
            position = (position + 1) % len(pieces)
            if len(pieces[candidate]) + len(sentence) <= limit:
                pieces[candidate] += sentence
                placed = True
                break
        if not placed:
            break
        pending.pop(0)

    if pending:
        logger.warning(f"All segments at capacity; appending {len(pending)} sentence(s) to shortest segments")
    for sentence in pending:
        shortest = min(range(len(pieces)), key=lambda i: len(pieces[i]))
        pieces[shortest] += sentence

    return pieces


def segment_fallback(chapter_text: str, desired_count: int) -> List[Segment]:
    """
    Deterministically pack whole sentences into exactly `desired_count` segments.

    Every slot but the last takes sentences until it reaches the minimum band,
    then keeps adding sentences that fit under the maximum, stopping after
    the first one that brings it to the target. The last slot absorbs
    everything left.

    Args:
        chapter_text: Full chapter text
        desired_count: Number of segments to produce (>= 1)

    Returns:
        Exactly `desired_count` segments in chapter order (trailing ones may be
        empty when the chapter is short)

    Raises:
        ValidationError: If desired_count < 1
    """
    if desired_count < 1:
        raise ValidationError(f"desired_count must be >= 1, got {desired_count}")

    sentences = split_sentences(chapter_text)
    pieces: List[str] = []
    cursor = 0

    for slot in range(desired_count):
        if slot == desired_count - 1:
            pieces.append("".join(sentences[cursor:]))
            cursor = len(sentences)
            break

        current = ""
        while cursor < len(sentences) and len(current) < settings.SEGMENT_MIN_CHARS:
            current += sentences[cursor]
            cursor += 1

        while cursor < len(sentences):
            next_sentence = sentences[cursor]
            if len(current) + len(next_sentence) > settings.SEGMENT_MAX_CHARS:
                break
            current += next_sentence
            cursor += 1
            if len(current) >= settings.SEGMENT_TARGET_CHARS:
                break

        pieces.append(current)

    if cursor < len(sentences):
        redistribute_leftovers(pieces, sentences[cursor:])

    logger.debug(
        f"Fallback segmentation: {len(chapter_text)} chars, {len(sentences)} sentences -> "
        f"{[len(p) for p in pieces]}"
    )
    return [Segment(index=i, text=piece) for i, piece in enumerate(pieces)]


def extract_marked_segments(response_text: str) -> List[str]:
    """Extract the non-empty pieces following [SEGMENT n] / 【片段n】 markers."""
    pieces = []
    for match in _SEGMENT_PIECE_RE.finditer(response_text):
        piece = match.group(1).strip()
        if piece:
            pieces.append(piece)
    return pieces


class Segmenter:
    """Chapter segmenter with AI-assisted primary path and deterministic fallback."""

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        timeout: Optional[float] = settings.GENERATION_TIMEOUT
    ):
        """
        Args:
            generator: Text generation service; None means fallback only
            timeout: Seconds allowed for the segmentation call
        """
        self.generator = generator
        self.timeout = timeout

    async def segment(
        self,
        chapter_text: str,
        desired_count: int,
        meta: Optional[ChapterMeta] = None
    ) -> List[Segment]:
        """
        Split chapter text into exactly `desired_count` segments.

        A primary result with the wrong number of pieces is discarded entirely.

        Raises:
            ValidationError: If desired_count < 1
        """
        if desired_count < 1:
            raise ValidationError(f"desired_count must be >= 1, got {desired_count}")

        if self.generator is None:
            return segment_fallback(chapter_text, desired_count)

        meta = meta or ChapterMeta(chapter_number=0)
        prompt = build_segmentation_prompt(chapter_text, desired_count, meta)

        try:
            response = await collect_text(self.generator, prompt, timeout=self.timeout)
        except GenerationError as e:
            logger.warning(f"Chapter {meta.chapter_number}: AI segmentation failed ({e}); using fallback")
            return segment_fallback(chapter_text, desired_count)

        pieces = extract_marked_segments(response)
        if len(pieces) != desired_count:
            logger.warning(
                f"Chapter {meta.chapter_number}: AI returned {len(pieces)} segments, "
                f"expected {desired_count}; using fallback"
            )
            return segment_fallback(chapter_text, desired_count)

        out_of_band = [
            i for i, piece in enumerate(pieces)
            if not (settings.SEGMENT_MIN_CHARS <= len(piece) <= settings.SEGMENT_MAX_CHARS)
        ]
        if out_of_band:
            logger.debug(f"Chapter {meta.chapter_number}: AI segments outside band: {out_of_band}")

        logger.info(f"Chapter {meta.chapter_number}: AI segmentation produced {len(pieces)} segments")
        return [Segment(index=i, text=piece) for i, piece in enumerate(pieces)]
