"""Tests for centralized logging configuration."""

import logging
import pytest

from logging_config import PIPELINE_LOGGERS, build_handlers, setup_logging, setup_pipeline_logging


@pytest.fixture
def restore_loggers():
    """Snapshot handlers/levels/propagation of loggers touched by a test and restore them afterwards."""
    saved = {}

    def track(name):
        logger = logging.getLogger(name)
        saved.setdefault(name, (list(logger.handlers), logger.level, logger.propagate))
        return logger

    yield track

    for name, (handlers, level, propagate) in saved.items():
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            if handler not in handlers:
                handler.close()
        logger.handlers[:] = handlers
        logger.setLevel(level)
        logger.propagate = propagate


@pytest.mark.unit
class TestBuildHandlers:

    def test_console_only_by_default(self):
        handlers = build_handlers(logging.DEBUG)

        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert handlers[0].level == logging.DEBUG

    def test_file_handler_creates_parent_dirs(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        handlers = build_handlers(log_file=log_file, console_output=False)

        assert [type(h) for h in handlers] == [logging.FileHandler]
        assert log_file.parent.is_dir()
        handlers[0].close()


@pytest.mark.unit
class TestSetupLogging:

    def test_console_handler(self, restore_loggers):
        restore_loggers("test.logging.console")
        logger = setup_logging("test.logging.console", level=logging.DEBUG)

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_repeated_setup_does_not_duplicate(self, restore_loggers):
        restore_loggers("test.logging.repeat")
        setup_logging("test.logging.repeat")
        logger = setup_logging("test.logging.repeat")

        assert len(logger.handlers) == 1

    def test_file_output(self, restore_loggers, tmp_path):
        restore_loggers("test.logging.file")
        log_file = tmp_path / "logs" / "run.log"
        logger = setup_logging("test.logging.file", log_file=log_file, console_output=False)

        logger.info("chapter 1 assembled")
        for handler in logger.handlers:
            handler.flush()

        assert "chapter 1 assembled" in log_file.read_text(encoding="utf-8")


@pytest.mark.unit
class TestSetupPipelineLogging:

    def test_package_and_extra_loggers_share_one_run_log(self, restore_loggers, tmp_path):
        for name in (*PIPELINE_LOGGERS, "test.harness"):
            restore_loggers(name)
        log_file = tmp_path / "run.log"

        handlers = setup_pipeline_logging(level=logging.WARNING, log_file=log_file, extra_loggers=("test.harness",))

        assert "script_pipeline" in PIPELINE_LOGGERS
        for name in (*PIPELINE_LOGGERS, "test.harness"):
            logger = logging.getLogger(name)
            assert logger.level == logging.WARNING
            assert logger.handlers == handlers
            assert logger.propagate is False

        logging.getLogger("script_pipeline.segmenter").warning("AI segmentation failed")
        logging.getLogger("test.harness").warning("Retrying save once")
        logging.getLogger("script_pipeline.batch").info("below threshold")
        for handler in handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert "script_pipeline.segmenter - WARNING - AI segmentation failed" in lines[0]
        assert "test.harness - WARNING - Retrying save once" in lines[1]
