"""
Gemini API utilities for the chapter script pipeline.

Centralized module for all Google Generative AI (Gemini) interactions.
"""

import logging
import os
from typing import AsyncIterator, Optional
from google import genai
from dotenv import load_dotenv
from pathlib import Path

logger = logging.getLogger(__name__)

# Default model name
DEFAULT_MODEL_NAME = "gemini-2.0-flash"


class GeminiAPI:
    """Wrapper for Gemini API operations."""

    def __init__(self, model_name: str = DEFAULT_MODEL_NAME, api_key: Optional[str] = None):
        """
        Initialize Gemini API client.

        Args:
            model_name: Name of the Gemini model to use
            api_key: API key (if None, loads from environment)
        """
        self.model_name = model_name
        self._configured = False
        self.client = None

        if api_key:
            self._configure_with_key(api_key)
        else:
            self._configure_from_env()

    def _configure_from_env(self):
        """Load API key from .env file and configure Gemini."""
        current_dir = Path(__file__).parent
        project_root = current_dir.parent.parent
        dotenv_path = project_root / ".env"

        load_dotenv(dotenv_path=dotenv_path)

        api_key = os.getenv("GeminiImageAPI") or os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise ValueError(
                "Gemini API key not found. Set GeminiImageAPI in .env file or pass api_key parameter."
            )

        self.client = genai.Client(api_key=api_key)
        self._configured = True

    def _configure_with_key(self, api_key: str):
        """Configure Gemini with provided API key."""
        self.client = genai.Client(api_key=api_key)
        self._configured = True

    async def stream_text(self, prompt: str) -> AsyncIterator[str]:
        """
        Stream a text response chunk by chunk.

        Uses the async client so the event loop stays free while the
        response arrives. Chunks without text (safety/usage frames) are skipped.

        Args:
            prompt: Text prompt

        Yields:
            Text fragments in arrival order
        """
        if not self._configured:
            raise RuntimeError("Gemini API not configured.")

        stream = await self.client.aio.models.generate_content_stream(
            model=self.model_name,
            contents=prompt
        )
        async for chunk in stream:
            text = getattr(chunk, "text", None)
            if text:
                yield text


class GeminiTextService:
    """Generative text service backed by Gemini streaming.

    Implements the `stream(prompt)` contract consumed by the script pipeline.
    """

    def __init__(self, api: Optional[GeminiAPI] = None, model_name: str = DEFAULT_MODEL_NAME):
        self.api = api if api is not None else GeminiAPI(model_name=model_name)

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        """Stream the response to a single prompt."""
        logger.debug(f"Gemini request ({self.api.model_name}): {len(prompt)} chars")
        async for text in self.api.stream_text(prompt):
            yield text


# Convenience constructor
def configure_gemini(api_key: Optional[str] = None, model_name: str = DEFAULT_MODEL_NAME) -> GeminiAPI:
    """
    Configure and return a Gemini API instance.

    Args:
        api_key: Optional API key (loads from .env if not provided)
        model_name: Gemini model to use

    Returns:
        Configured GeminiAPI instance
    """
    return GeminiAPI(model_name=model_name, api_key=api_key)
