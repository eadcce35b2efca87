"""Data models for the chapter script pipeline."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .config import settings


class ChapterText(BaseModel):
    """One chapter of a novel, as supplied by the caller (read-only)."""

    model_config = ConfigDict(frozen=True)

    chapter_number: int
    title: str = ""
    content: str


class ChapterMeta(BaseModel):
    """Context shared by every generative call for one chapter."""

    model_config = ConfigDict(frozen=True)

    novel_title: str = ""
    chapter_number: int
    chapter_title: str = ""

    @classmethod
    def from_chapter(cls, chapter: ChapterText, novel_title: str = "") -> "ChapterMeta":
        return cls(
            novel_title=novel_title,
            chapter_number=chapter.chapter_number,
            chapter_title=chapter.title,
        )


class Segment(BaseModel):
    """A bounded-length contiguous slice of a chapter's text."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)  # 0-based, chapter order
    text: str


class NarrationUnit(BaseModel):
    """Voice-over text paired 1:1 with a segment."""

    model_config = ConfigDict(frozen=True)

    segment_index: int = Field(ge=0)
    text: str

    @field_validator('text')
    @classmethod
    def validate_length(cls, v: str) -> str:
        """Narration units must stay inside the per-unit character band."""
        if not (settings.NARRATION_MIN_CHARS <= len(v) <= settings.NARRATION_MAX_CHARS):
            raise ValueError(
                f"Narration length {len(v)} outside "
                f"{settings.NARRATION_MIN_CHARS}-{settings.NARRATION_MAX_CHARS}"
            )
        return v


class SceneStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class SceneScript(BaseModel):
    """A single-shot script block generated from one segment."""

    segment_index: int = Field(ge=0)
    scene_number: int = Field(ge=1)
    title: str
    body: str
    status: SceneStatus = SceneStatus.SUCCESS
    segment_text: str = ""
    narration: str = ""

    @field_validator('body')
    @classmethod
    def validate_body_not_empty(cls, v: str) -> str:
        """Ensure body is not empty (failed scenes carry a placeholder)."""
        if not v or not v.strip():
            raise ValueError("Scene body cannot be empty")
        return v


class ScriptDocument(BaseModel):
    """Assembled script for one chapter; the only entity that gets persisted."""

    chapter_number: int
    chapter_title: str = ""
    scenes: List[SceneScript] = []
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field
    @property
    def full_text(self) -> str:
        """Ordered scene bodies joined by a blank line."""
        return settings.SCENE_SEPARATOR.join(scene.body for scene in self.scenes)

    @property
    def failed_scene_count(self) -> int:
        return sum(1 for scene in self.scenes if scene.status == SceneStatus.FAILED)


class ChapterPhase(str, Enum):
    """States of the per-chapter pipeline."""

    PENDING = "pending"
    CREDIT_CHECK = "credit_check"
    SEGMENTING = "segmenting"
    NARRATING = "narrating"
    SCENE_LOOP = "scene_loop"
    ASSEMBLED = "assembled"
    ABORTED = "aborted"
    FAILED = "failed"


class CreditResult(BaseModel):
    """Outcome of one credit ledger deduction."""

    success: bool
    balance: Optional[float] = None
    error: Optional[str] = None


class ProgressUpdate(BaseModel):
    """Observational progress event for the notification sink."""

    chapter_number: Optional[int] = None  # None for batch-level events
    phase: str
    percent: float = Field(ge=0.0, le=100.0)
    message: Optional[str] = None


class BatchStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    ABORTED = "aborted"


class BatchResult(BaseModel):
    """Outcome of one Batch Controller run."""

    status: BatchStatus
    total_chapters: int = 0
    documents: Dict[int, ScriptDocument] = {}  # newly assembled, keyed by chapter number
    script_set: List[ScriptDocument] = []  # merged set that is (or would be) persisted
    completed_chapters: List[int] = []
    failed_chapters: List[int] = []
    skipped_chapters: List[int] = []
    abort_reason: Optional[str] = None
    saved: bool = False

    def summary(self) -> str:
        """User-facing terminal state."""
        if self.status == BatchStatus.ABORTED:
            return "aborted (insufficient credit)"
        if self.status == BatchStatus.PARTIAL:
            return f"partially completed ({len(self.completed_chapters)} succeeded)"
        return "completed"
