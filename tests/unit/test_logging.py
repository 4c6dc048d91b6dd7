"""Unit tests for the structlog helpers."""

from __future__ import annotations

import logging

import structlog

from helping_hand.utils.logging import configure_logging, get_logger, session_context


class TestSessionContext:
    def test_binds_and_unbinds_session_fields(self) -> None:
        with session_context(7, ["coffee", "cafe"]):
            bound = structlog.contextvars.get_contextvars()
            assert bound["generation"] == 7
            assert bound["terms"] == ["coffee", "cafe"]
        assert "generation" not in structlog.contextvars.get_contextvars()


class TestConfigureLogging:
    def test_quiet_third_party_loggers(self) -> None:
        configure_logging(log_level="INFO")
        assert logging.getLogger("httpx").level == logging.WARNING
        configure_logging(log_level="DEBUG")
        assert logging.getLogger("httpx").level == logging.DEBUG
        configure_logging(log_level="INFO")

    def test_get_logger_returns_usable_logger(self) -> None:
        logger = get_logger("helping_hand.test")
        logger.info("test_event", key="value")
