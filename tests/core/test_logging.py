"""Tests for logging setup."""

import json
import logging

import pytest
from loguru import logger

from shortlink.core.config import Settings
from shortlink.core.logging import InterceptHandler, setup_logging


@pytest.fixture
def restore_logging():
    yield
    logger.remove()
    logging.basicConfig(handlers=[], force=True)


class TestSetupLogging:

    def test_json_file_sink(self, tmp_path, restore_logging):
        settings = Settings(LOG_TO_FILE=True, LOG_DIR=str(tmp_path), LOG_FILENAME="engine.log", LOG_JSON=True)
        setup_logging(settings)

        logging.getLogger("shortlink.services.test").warning("intercepted message")
        logger.complete()

        lines = (tmp_path / "engine.log").read_text().splitlines()
        record = json.loads(lines[-1])
        assert record["record"]["message"] == "intercepted message"
        assert record["record"]["level"]["name"] == "WARNING"

    def test_plain_file_sink(self, tmp_path, restore_logging):
        settings = Settings(LOG_TO_FILE=True, LOG_DIR=str(tmp_path), LOG_FILENAME="plain.log", LOG_JSON=False)
        setup_logging(settings)

        logger.info("direct message")
        logger.complete()

        assert "direct message" in (tmp_path / "plain.log").read_text()

    def test_level_filters(self, tmp_path, restore_logging):
        settings = Settings(LOG_TO_FILE=True, LOG_DIR=str(tmp_path), LOG_FILENAME="level.log",
                            LOG_JSON=False, LOG_LEVEL="warning")
        setup_logging(settings)

        logger.info("too quiet")
        logger.error("loud enough")
        logger.complete()

        content = (tmp_path / "level.log").read_text()
        assert "too quiet" not in content
        assert "loud enough" in content

    def test_quietens_libraries(self, restore_logging):
        setup_logging(Settings(LOG_TO_FILE=False, DEBUG=False))

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert isinstance(logging.getLogger().handlers[0], InterceptHandler)
