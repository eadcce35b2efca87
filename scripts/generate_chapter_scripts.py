#!/usr/bin/env python3
"""
Generate chapter scripts for a novel: chapters JSON → Gemini → script JSON.

Input file format:
    {
        "novel_id": "my-novel",
        "title": "My Novel",
        "chapters": [{"chapter_number": 1, "title": "...", "content": "..."}, ...]
    }

Scripts are merged into <output-dir>/<novel_id>.json. Credits come from an
in-memory ledger seeded with --credits (one credit per chapter by default).
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from config import get_env_int, get_output_dir
from exceptions import ScriptPersistenceError
from logging_config import setup_logging, setup_pipeline_logging
from script_pipeline import (
    BatchController,
    ChapterPipeline,
    ChapterText,
    InMemoryCreditLedger,
    JsonScriptStore,
    LoggingProgressSink,
)
from script_pipeline.config import settings
from util.gemini import GeminiTextService

logger = setup_logging(__name__)

DEFAULT_USER_ID = "local"


def load_novel(path: Path) -> dict:
    """
    Load a novel description file.

    Raises:
        ValueError: If the file has no chapters
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if not data.get("chapters"):
        raise ValueError(f"No chapters found in {path}")
    data.setdefault("novel_id", path.stem)
    data.setdefault("title", "")
    return data


async def generate(args) -> int:
    novel = load_novel(Path(args.input))
    chapters = [ChapterText(**chapter) for chapter in novel["chapters"]]
    selected = args.chapters or [chapter.chapter_number for chapter in chapters]

    sink = LoggingProgressSink()
    ledger = InMemoryCreditLedger(balances={args.user_id: args.credits})
    store = JsonScriptStore(args.output_dir)
    pipeline = ChapterPipeline(
        generator=GeminiTextService(model_name=args.model),
        credit_ledger=ledger,
        user_id=args.user_id,
        novel_title=novel["title"],
        progress_sink=sink,
    )
    controller = BatchController(pipeline, store, progress_sink=sink)

    logger.info("=" * 60)
    logger.info(f"Generating scripts for '{novel['title'] or novel['novel_id']}', chapters {selected}")
    logger.info("=" * 60)

    try:
        result = await controller.run(
            novel["novel_id"],
            chapters,
            selected,
            confirm_regenerate=not args.keep_existing,
        )
    except ScriptPersistenceError as e:
        logger.error(f"Saving failed: {e}")
        if e.result is None:
            return 1
        logger.info("Retrying save once")
        try:
            result = await controller.persist(novel["novel_id"], e.result)
        except Exception as retry_error:
            logger.error(f"Retry failed: {retry_error}")
            return 1

    logger.info("=" * 60)
    logger.info(f"Script generation {result.summary()}")
    logger.info(f"Output: {store.path_for(novel['novel_id'])}")
    logger.info("=" * 60)
    return 0 if result.status.value == "completed" else 2


def main():
    """Main entry point for chapter script generation."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Generate short-video scripts from novel chapters using Gemini"
    )
    parser.add_argument(
        "input",
        help="Novel JSON file with a 'chapters' list"
    )
    parser.add_argument(
        "--chapters",
        type=int,
        nargs="+",
        help="Chapter numbers to process (default: all)"
    )
    parser.add_argument(
        "--output-dir",
        default=str(get_output_dir()),
        help="Directory for script JSON files (default: output/scripts or SCRIPT_OUTPUT_DIR)"
    )
    parser.add_argument(
        "--keep-existing",
        action="store_true",
        help="Do not regenerate chapters that already have scripts"
    )
    parser.add_argument(
        "--credits",
        type=int,
        default=get_env_int("SCRIPT_CREDITS", 100),
        help="Credits available to the local ledger (default: 100 or SCRIPT_CREDITS)"
    )
    parser.add_argument(
        "--user-id",
        default=DEFAULT_USER_ID,
        help="Ledger account to charge"
    )
    parser.add_argument(
        "--model",
        default=settings.GEMINI_MODEL,
        help=f"Gemini model (default: {settings.GEMINI_MODEL})"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log prompts and raw responses"
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also append the run log to this file"
    )

    args = parser.parse_args()
    handlers = setup_pipeline_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=args.log_file,
        extra_loggers=(__name__,)
    )

    exit_code = 1
    try:
        exit_code = asyncio.run(generate(args))
    except Exception as e:
        logger.error("=" * 60)
        logger.error(f"SCRIPT GENERATION FAILED: {e}")
        logger.error("=" * 60)
    finally:
        for handler in handlers:
            handler.close()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
