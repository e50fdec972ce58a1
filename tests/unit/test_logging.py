"""Unit tests for interview logging and observability.

This module tests the logging infrastructure, performance monitoring,
and observability hooks.
"""

import json
import logging
import sys
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from issue_interview.interview_logging import (
    LOGGER_NAME,
    JsonFormatter,
    ObservabilityHooks,
    PerformanceMonitor,
    log_answer_recorded,
    log_error_with_context,
    log_interview_started,
    log_issue_created,
    log_operation,
    log_performance,
    observability_hooks,
    performance_monitor,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logging_state():
    performance_monitor.clear()
    yield
    performance_monitor.clear()
    logging.getLogger(LOGGER_NAME).handlers.clear()


class TestJsonFormatter:
    """Test cases for JsonFormatter."""

    def test_json_formatter_basic(self):
        """Test basic JSON formatting."""
        formatter = JsonFormatter()
        logger = logging.getLogger("test")
        record = logger.makeRecord("test", logging.INFO, "Test message", (), None)

        data = json.loads(formatter.format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert "module" in data
        assert "function" in data
        assert "line" in data

    def test_json_formatter_with_exception(self):
        """Test JSON formatting with exception info."""
        formatter = JsonFormatter()
        logger = logging.getLogger("test")
        try:
            raise ValueError("Test exception")
        except ValueError:
            record = logger.makeRecord("test", logging.ERROR, "Test message", (), sys.exc_info())

        data = json.loads(formatter.format(record))

        assert data["level"] == "ERROR"
        assert "ValueError" in data["exception"]

    def test_json_formatter_with_extra_fields(self):
        """Test JSON formatting with extra fields."""
        formatter = JsonFormatter()
        logger = logging.getLogger("test")
        record = logger.makeRecord("test", logging.INFO, "Test message", (), None)
        record.extra_fields = {"interview_id": "interview-1"}

        data = json.loads(formatter.format(record))

        assert data["interview_id"] == "interview-1"


class TestPerformanceMonitor:
    """Test cases for PerformanceMonitor."""

    def test_record_metric(self):
        """Test recording a performance metric."""
        monitor = PerformanceMonitor()

        monitor.record_metric("test_metric", 42, {"tag": "test"})
        metrics = monitor.get_metrics("test_metric")

        assert len(metrics["test_metric"]) == 1
        assert metrics["test_metric"][0]["value"] == 42
        assert metrics["test_metric"][0]["tags"]["tag"] == "test"
        assert "timestamp" in metrics["test_metric"][0]

    def test_get_all_metrics_and_clear(self):
        """Test getting all metrics."""
        monitor = PerformanceMonitor()
        monitor.record_metric("metric1", 1)
        monitor.record_metric("metric2", 2)
        monitor.record_metric("metric1", 3)

        all_metrics = monitor.get_metrics()

        assert len(all_metrics) == 2
        assert [metric["value"] for metric in all_metrics["metric1"]] == [1, 3]

        monitor.clear()
        assert monitor.get_metrics() == {}


class TestLogPerformance:
    """Test cases for log_performance decorator."""

    def test_log_performance_decorator(self):
        """Test the log_performance decorator."""
        @log_performance("test_operation")
        def test_function():
            return "test_result"

        assert test_function() == "test_result"

        metrics = performance_monitor.get_metrics("test_operation_duration")["test_operation_duration"]
        assert len(metrics) == 1
        assert metrics[0]["value"] >= 0
        assert metrics[0]["tags"]["status"] == "success"

    def test_log_performance_decorator_with_exception(self):
        """Test the log_performance decorator with exception."""
        @log_performance("test_operation")
        def test_function():
            raise ValueError("Test error")

        with pytest.raises(ValueError):
            test_function()

        metrics = performance_monitor.get_metrics("test_operation_duration")["test_operation_duration"]
        assert len(metrics) == 1
        assert metrics[0]["tags"]["status"] == "error"
        assert metrics[0]["tags"]["error_type"] == "ValueError"


class TestLogOperation:
    """Test cases for log_operation context manager."""

    def test_log_operation_success(self):
        """Test successful operation logging."""
        with patch("issue_interview.interview_logging.std_logging.getLogger") as mock_logger:
            mock_logger_instance = MagicMock()
            mock_logger.return_value = mock_logger_instance

            with log_operation("submit_answer", interview_id="interview-1"):
                pass

            assert mock_logger_instance.info.called
            assert mock_logger_instance.error.called is False
            extra = mock_logger_instance.info.call_args[1]["extra"]["extra_fields"]
            assert extra["interview_id"] == "interview-1"
            assert extra["status"] == "completed"

    def test_log_operation_with_exception(self):
        """Test operation logging with exception."""
        with patch("issue_interview.interview_logging.std_logging.getLogger") as mock_logger:
            mock_logger_instance = MagicMock()
            mock_logger.return_value = mock_logger_instance

            with pytest.raises(ValueError):
                with log_operation("submit_answer"):
                    raise ValueError("Test error")

            assert mock_logger_instance.error.called
            assert "Test error" in str(mock_logger_instance.error.call_args)


class TestObservabilityHooks:
    """Test cases for ObservabilityHooks."""

    def test_register_and_trigger_hooks(self):
        """Test registering and triggering hooks."""
        hooks = ObservabilityHooks()
        received = []

        hooks.register_hook("answer_recorded", lambda **data: received.append(data))
        hooks.trigger_hooks("answer_recorded", question_id="title")

        assert received == [{"question_id": "title"}]

    def test_unregister_hook(self):
        hooks = ObservabilityHooks()
        received = []

        def callback(**data):
            received.append(data)

        hooks.register_hook("answer_recorded", callback)
        hooks.unregister_hook("answer_recorded", callback)
        hooks.trigger_hooks("answer_recorded", question_id="title")

        assert received == []

    def test_log_workflow_event_passes_interview_id(self):
        """Test logging workflow events."""
        hooks = ObservabilityHooks()
        received = []
        hooks.register_hook("interview_started", lambda **data: received.append(data))

        hooks.log_workflow_event("interview_started", interview_id="interview-1", suggested_priority="High")

        assert received[0]["interview_id"] == "interview-1"
        assert received[0]["suggested_priority"] == "High"
        assert "event_type" not in received[0]
        assert "timestamp" in received[0]

    def test_hook_failure_handling(self):
        """Test that hook failures don't crash the system."""
        hooks = ObservabilityHooks()
        received = []

        def failing_callback(**data):
            raise ValueError("Hook failed")

        hooks.register_hook("interview_completed", failing_callback)
        hooks.register_hook("interview_completed", lambda **data: received.append(data))

        hooks.trigger_hooks("interview_completed", answered=8)

        assert received == [{"answered": 8}]


class TestLoggingFunctions:
    """Test cases for logging convenience functions."""

    def test_log_interview_started(self):
        with patch("issue_interview.interview_logging.observability_hooks") as mock_hooks:
            log_interview_started("interview-1", suggested_category="bug-insight")

            mock_hooks.log_workflow_event.assert_called_once_with(
                "interview_started", interview_id="interview-1", suggested_category="bug-insight"
            )

    def test_log_answer_recorded(self):
        with patch("issue_interview.interview_logging.observability_hooks") as mock_hooks:
            log_answer_recorded("interview-1", "title", revision=False)

            call_args = mock_hooks.log_workflow_event.call_args
            assert call_args[0] == ("answer_recorded",)
            assert call_args[1]["question_id"] == "title"
            assert call_args[1]["revision"] is False

    def test_log_issue_created(self):
        with patch("issue_interview.interview_logging.observability_hooks") as mock_hooks:
            log_issue_created("interview-1", "loqa-hub", "https://github.com/loqalabs/loqa-hub/issues/1")

            call_args = mock_hooks.log_workflow_event.call_args
            assert call_args[1]["repository"] == "loqa-hub"
            assert call_args[1]["issue_url"].endswith("/issues/1")

    def test_log_error_with_context(self):
        """Test log_error_with_context function."""
        with patch("issue_interview.interview_logging.std_logging.getLogger") as mock_logger:
            error = ValueError("Test error")
            context = {"operation": "submit_answer", "interview_id": "interview-1"}

            log_error_with_context(error, context, extra_param="extra_value")

            assert mock_logger.return_value.error.called
            call_args = mock_logger.return_value.error.call_args
            assert "Error in submit_answer: Test error" in call_args[0][0]
            extra_fields = call_args[1]["extra"]["extra_fields"]
            assert extra_fields["context"]["interview_id"] == "interview-1"
            assert extra_fields["extra_param"] == "extra_value"
            assert extra_fields["error_type"] == "ValueError"
            assert call_args[1]["exc_info"] is error


class TestLoggingIntegration:
    """Integration tests for logging functionality."""

    def test_setup_logging(self):
        """Test setting up logging configuration."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "test.log"

            setup_logging(log_level=logging.DEBUG, log_file=log_file)
            logging.getLogger(f"{LOGGER_NAME}.test").info("Test message")

            content = log_file.read_text()
            assert "Test message" in content
            for line in content.strip().split("\n"):
                json.loads(line)

            for handler in logging.getLogger(LOGGER_NAME).handlers:
                handler.close()

    def test_end_to_end_logging_flow(self):
        """Test end-to-end logging flow."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "test.log"
            setup_logging(log_level=logging.DEBUG, log_file=log_file)
            received = []

            def hook(**data):
                received.append(data)

            observability_hooks.register_hook("interview_started", hook)
            try:
                log_interview_started("interview-1", suggested_priority="High")
                performance_monitor.record_metric("test_metric", 42)
            finally:
                observability_hooks.unregister_hook("interview_started", hook)

            content = log_file.read_text()
            assert "Workflow event: interview_started" in content
            assert "Metric recorded: test_metric=42" in content
            assert received[0]["interview_id"] == "interview-1"

            for handler in logging.getLogger(LOGGER_NAME).handlers:
                handler.close()
