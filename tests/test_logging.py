"""
Tests for logging setup.
"""
import logging

from app.core.logging_config import setup_logging


class TestSetupLogging:
    """Tests for setup_logging"""

    def test_console_handler_and_level(self):
        logger = setup_logging("test-orchestrator-console", level=logging.DEBUG, enable_console=True)
        assert logger.level == logging.DEBUG
        assert any(isinstance(h, logging.StreamHandler) for h in logger.handlers)

    def test_repeated_setup_does_not_duplicate_handlers(self):
        first = setup_logging("test-orchestrator-repeat", enable_console=True)
        count = len(first.handlers)
        second = setup_logging("test-orchestrator-repeat", enable_console=True)
        assert second is first
        assert len(second.handlers) == count
