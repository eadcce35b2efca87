"""
Shared pytest fixtures for chapter script pipeline tests.
"""

import os
import sys
import pytest
from pathlib import Path
from typing import List, Optional, Union


def pytest_addoption(parser):
    """Add --full flag to run entire test suite"""
    parser.addoption(
        "--full",
        action="store_true",
        default=False,
        help="Run full test suite (skip smoke-only mode)"
    )


def pytest_configure(config):
    """Configure test run based on flags"""
    if config.getoption("--full"):
        # Only clear default marker if no explicit -m flag was provided
        if config.option.markexpr == "smoke or (not integration and not slow)":
            config.option.markexpr = ""  # Run all tests


# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Make src importable when running without an editable install
sys.path.insert(0, str(PROJECT_ROOT / "src"))


class FakeGenerator:
    """
    Scripted stand-in for the generative text service.

    Each call to stream() consumes the next scripted response. A response is
    either text (streamed in small chunks) or an exception raised mid-stream.
    Once the script runs out, `default` is returned for every further call.
    """

    def __init__(
        self,
        responses: Optional[List[Union[str, Exception]]] = None,
        default: Optional[Union[str, Exception]] = None,
        chunk_size: int = 7
    ):
        self.responses = list(responses or [])
        self.default = default
        self.chunk_size = chunk_size
        self.prompts: List[str] = []

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    async def stream(self, prompt: str):
        self.prompts.append(prompt)
        response = self.responses.pop(0) if self.responses else self.default
        if response is None:
            raise RuntimeError("FakeGenerator has no scripted response")
        if isinstance(response, Exception):
            raise response
        for start in range(0, len(response), self.chunk_size):
            yield response[start:start + self.chunk_size]


class RecordingProgressSink:
    """Progress sink that keeps every event for assertions."""

    def __init__(self):
        self.updates = []
        self.notices = []

    def update(self, event):
        self.updates.append(event)

    def notice(self, success, message):
        self.notices.append((success, message))


def make_chapter_content(sentence_count: int, sentence: str = "他走进了昏暗的大厅里。") -> str:
    """Chapter body made of identical sentences (default 11 characters each)."""
    return sentence * sentence_count


@pytest.fixture
def fake_generator():
    """Factory for FakeGenerator instances."""
    return FakeGenerator


@pytest.fixture
def progress_sink():
    return RecordingProgressSink()


@pytest.fixture
def sample_chapter():
    """A 550-character chapter (50 sentences of 11 characters)."""
    from script_pipeline.models import ChapterText
    return ChapterText(chapter_number=1, title="The Hall", content=make_chapter_content(50))


@pytest.fixture
def short_chapter():
    """A chapter short enough that the minimum scene count applies."""
    from script_pipeline.models import ChapterText
    return ChapterText(chapter_number=2, title="Dawn", content=make_chapter_content(10))


@pytest.fixture(scope="function")
def test_output_dir(tmp_path):
    """
    Return a clean test output directory for each test.
    Uses pytest's tmp_path fixture which is automatically cleaned up.
    """
    output_dir = tmp_path / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


@pytest.fixture(scope="session")
def check_api_key():
    """Check if Gemini API key is available."""
    from dotenv import load_dotenv
    load_dotenv(PROJECT_ROOT / ".env")
    api_key = os.getenv("GeminiImageAPI") or os.getenv("GEMINI_API_KEY")
    if not api_key:
        pytest.skip("Gemini API key not found. Set GeminiImageAPI in .env file.")
    return api_key
