import json
import logging

import pytest

from techmaster.utils.logging_config import (
    PerformanceTracker,
    StructuredFormatter,
    log_ai_interaction,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    def test_file_handlers(self, tmp_path, restore_root_logger):
        """File logging writes the rotating log and the error log."""
        setup_logging("DEBUG", log_dir=str(tmp_path / "logs"))
        logging.getLogger("techmaster.test").error("boom")
        for handler in restore_root_logger.handlers:
            handler.flush()
        assert "boom" in (tmp_path / "logs" / "techmaster.log").read_text(encoding="utf-8")
        assert "boom" in (tmp_path / "logs" / "errors.log").read_text(encoding="utf-8")

    def test_console_only(self, tmp_path, restore_root_logger):
        """Without file logging no directory is created."""
        setup_logging("INFO", log_dir=str(tmp_path / "never"), enable_file_logging=False)
        assert not (tmp_path / "never").exists()
        assert len(restore_root_logger.handlers) == 1
        assert restore_root_logger.level == logging.INFO


class TestFormattersAndHelpers:
    def test_structured_formatter(self):
        """Records become JSON with their extra data."""
        record = logging.LogRecord("techmaster.x", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        record.extra_data = {"k": 1}
        payload = json.loads(StructuredFormatter().format(record))
        assert payload["message"] == "hello world"
        assert payload["extra"] == {"k": 1}

    def test_performance_tracker(self):
        """Durations are measured on exit."""
        with PerformanceTracker("op", logging.getLogger("techmaster.test")) as tracker:
            pass
        assert tracker.duration_ms >= 0.0

    def test_log_ai_interaction(self, caplog):
        """Generation calls are logged with their token counts."""
        logger = logging.getLogger("techmaster.test.ai")
        with caplog.at_level(logging.INFO, logger="techmaster.test.ai"):
            log_ai_interaction(logger, "m", 42, 10.0, True)
        assert caplog.records[-1].extra_data["tokens_used"] == 42
