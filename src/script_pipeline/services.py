"""External collaborator contracts for the script pipeline.

The pipeline only depends on these narrow interfaces:
- TextGenerator: streamed text generation (see util.gemini.GeminiTextService)
- CreditLedger: per-chapter credit deduction
- ScriptStore: loading/saving script documents (see script_pipeline.stores)
- ProgressSink: purely observational progress reporting
"""

import asyncio
import logging
from typing import AsyncIterator, Dict, List, Optional, Protocol

from exceptions import GenerationError
from .models import CreditResult, ProgressUpdate, ScriptDocument

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Generative text service: one prompt in, a stream of text fragments out."""

    def stream(self, prompt: str) -> AsyncIterator[str]:
        ...


class CreditLedger(Protocol):
    """Credit ledger service."""

    async def deduct(self, user_id: str, feature_key: str, note: str) -> CreditResult:
        ...


class ScriptStore(Protocol):
    """Document store for per-chapter script documents."""

    async def load_existing_scripts(self, novel_id: str) -> List[ScriptDocument]:
        ...

    async def save_scripts(self, novel_id: str, documents: List[ScriptDocument]) -> None:
        ...


class ProgressSink(Protocol):
    """Receives progress updates and terminal notices."""

    def update(self, event: ProgressUpdate) -> None:
        ...

    def notice(self, success: bool, message: str) -> None:
        ...


async def collect_text(generator: TextGenerator, prompt: str, timeout: Optional[float] = None) -> str:
    """
    Await a streamed response and return the accumulated text.

    The timeout covers the whole stream; on expiry the in-flight call is
    cancelled by asyncio.wait_for.

    Args:
        generator: Text generation service
        prompt: Prompt to send
        timeout: Seconds before the call is cancelled (None = no limit)

    Returns:
        Full response text

    Raises:
        GenerationError: On failure, timeout, or an empty response
    """
    async def _consume() -> str:
        parts = []
        async for fragment in generator.stream(prompt):
            parts.append(fragment)
        return "".join(parts)

    try:
        if timeout is None:
            text = await _consume()
        else:
            text = await asyncio.wait_for(_consume(), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise GenerationError(f"Generation timed out after {timeout}s") from e
    except GenerationError:
        raise
    except Exception as e:
        raise GenerationError(f"Generation failed: {e}") from e

    if not text.strip():
        raise GenerationError("Generation returned an empty response")

    logger.debug(f"Generated {len(text)} chars")
    return text


class InMemoryCreditLedger:
    """Credit ledger holding balances in memory.

    Features priced at zero (or less) are free and never touch the balance.
    """

    def __init__(
        self,
        balances: Optional[Dict[str, float]] = None,
        prices: Optional[Dict[str, float]] = None,
        default_price: float = 1.0
    ):
        self.balances: Dict[str, float] = dict(balances or {})
        self.prices: Dict[str, float] = dict(prices or {})
        self.default_price = default_price
        self.transactions: List[Dict[str, object]] = []

    def price_of(self, feature_key: str) -> float:
        return self.prices.get(feature_key, self.default_price)

    async def deduct(self, user_id: str, feature_key: str, note: str) -> CreditResult:
        price = self.price_of(feature_key)
        balance = self.balances.get(user_id, 0.0)

        if price <= 0:
            logger.debug(f"Feature '{feature_key}' is free; no deduction for {user_id}")
            return CreditResult(success=True, balance=balance)

        if balance < price:
            return CreditResult(
                success=False,
                balance=balance,
                error=f"Insufficient credits: need {price:g}, have {balance:g}"
            )

        balance -= price
        self.balances[user_id] = balance
        self.transactions.append(
            {"user_id": user_id, "feature_key": feature_key, "amount": price, "note": note}
        )
        return CreditResult(success=True, balance=balance)


class LoggingProgressSink:
    """Progress sink that writes every event to the log."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def update(self, event: ProgressUpdate) -> None:
        chapter = f"chapter {event.chapter_number}" if event.chapter_number is not None else "batch"
        suffix = f" - {event.message}" if event.message else ""
        self.log.info(f"[{event.percent:5.1f}%] {chapter}: {event.phase}{suffix}")

    def notice(self, success: bool, message: str) -> None:
        if success:
            self.log.info(message)
        else:
            self.log.warning(message)


def report_progress(sink: Optional[ProgressSink], event: ProgressUpdate) -> None:
    """Deliver a progress event; sink failures never affect the pipeline."""
    if sink is None:
        return
    try:
        sink.update(event)
    except Exception as e:
        logger.warning(f"Progress sink failed on {event.phase}: {e}")


def report_notice(sink: Optional[ProgressSink], success: bool, message: str) -> None:
    """Deliver a terminal notice; sink failures never affect the pipeline."""
    if sink is None:
        return
    try:
        sink.notice(success, message)
    except Exception as e:
        logger.warning(f"Progress sink failed on notice: {e}")
