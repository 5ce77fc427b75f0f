"""Unit tests for logging configuration."""

import logging

import pytest

from releaser.observability.logger import (
    TRACE,
    VERBOSE,
    LogContext,
    _context_processor,
    add_context,
    clear_all_context,
    configure_logging,
    get_log_level,
    get_logger,
)


@pytest.fixture(autouse=True)
def _reset_context():
    clear_all_context()
    yield
    clear_all_context()


class TestLoggingConfiguration:
    """Test logging configuration functions."""

    @pytest.mark.parametrize("level", ["DEBUG", "INFO", "WARNING", "ERROR"])
    def test_standard_levels(self, level):
        configure_logging(level=level)

        assert logging.getLogger().level == getattr(logging, level)

    def test_custom_levels(self):
        assert get_log_level("trace") == TRACE
        assert get_log_level("VERBOSE") == VERBOSE
        assert logging.getLevelName(VERBOSE) == "VERBOSE"

    def test_get_logger_emits_custom_levels(self, caplog):
        """trace() and verbose() reach the stdlib logger at their own levels."""
        logger = get_logger("releaser.levels")

        with caplog.at_level(TRACE, logger="releaser.levels"):
            logger.trace("git command")
            logger.verbose("frontier")
            logger.info("done")

        levels = [r.levelno for r in caplog.records if r.name == "releaser.levels"]
        assert levels == [TRACE, VERBOSE, logging.INFO]

    def test_unknown_level_defaults_to_info(self):
        assert get_log_level("chatty") == logging.INFO

    def test_httpx_kept_quiet(self):
        configure_logging(level="DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING

    def test_log_file_directories_created(self, tmp_path):
        log_file = tmp_path / "nested" / "dir" / "release.log"

        configure_logging(log_file=log_file, json_logs=True)

        assert log_file.parent.is_dir()
        assert any(isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers)


class TestLogContext:
    """Context propagation into log events."""

    def test_context_manager_scopes_values(self):
        with LogContext(package="@x/core"):
            assert _context_processor(None, "info", {"event": "e"})["package"] == "@x/core"

        assert "package" not in _context_processor(None, "info", {"event": "e"})

    def test_nested_contexts_merge(self):
        with LogContext(command="publish"), LogContext(package="a"):
            event = _context_processor(None, "info", {"event": "e"})

        assert event["command"] == "publish"
        assert event["package"] == "a"

    def test_add_and_clear(self):
        add_context(run="123")
        assert _context_processor(None, "info", {})["run"] == "123"

        clear_all_context()
        assert _context_processor(None, "info", {}) == {}
