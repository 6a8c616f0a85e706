import json
import logging

from techmaster.utils.error_monitoring import (
    ErrorMonitor,
    ErrorSeverity,
    MalformedPayloadError,
    PartialContentError,
    UpstreamUnavailableError,
)


class TestErrorMonitor:
    def test_record_logs_stage(self, caplog):
        """Each record emits one JSON line naming the stage."""
        monitor = ErrorMonitor()
        with caplog.at_level(logging.ERROR, logger="techmaster.utils.error_monitoring"):
            monitor.record(UpstreamUnavailableError("HTTP 500"), stage="news_fetch", operation="fetch_news")
        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["event"] == "stage_error"
        assert payload["stage"] == "news_fetch"
        assert payload["error_type"] == "UpstreamUnavailableError"

    def test_severity(self):
        """Partial content is low, bad auth is high."""
        monitor = ErrorMonitor()
        assert monitor.classify_severity(PartialContentError(["osExplained"])) is ErrorSeverity.LOW
        assert monitor.classify_severity(MalformedPayloadError("x")) is ErrorSeverity.MEDIUM
        assert monitor.classify_severity(UpstreamUnavailableError("HTTP 401 Unauthorized")) is ErrorSeverity.HIGH
        assert monitor.classify_severity(RuntimeError("?")) is ErrorSeverity.HIGH

    def test_recovery_suggestion(self):
        """Rate limits get a specific hint."""
        suggestion = ErrorMonitor().get_recovery_suggestion(UpstreamUnavailableError("HTTP 429"))
        assert "Rate limit" in suggestion

    def test_statistics_and_history_bound(self):
        """History is bounded and stages are listed once, in order."""
        monitor = ErrorMonitor(max_history=2)
        monitor.record(UpstreamUnavailableError("a"), stage="news_fetch", operation="op")
        monitor.record(MalformedPayloadError("b"), stage="generation", operation="op")
        monitor.record(MalformedPayloadError("c"), stage="generation", operation="op")
        stats = monitor.get_error_statistics()
        assert stats["total_errors"] == 3
        assert stats["error_types"] == {"UpstreamUnavailableError": 1, "MalformedPayloadError": 2}
        assert len(monitor.error_history) == 2
        assert monitor.stages_failed() == ["generation"]

    def test_partial_content_lists_sections(self):
        """The missing section names are kept on the error."""
        error = PartialContentError(["dsaChallenge", "osExplained"])
        assert error.missing_sections == ["dsaChallenge", "osExplained"]
        assert "dsaChallenge" in str(error)
