"""
Unit tests for Sentry scrubbing and the leveled logger.
"""

import logging

from dockmanager.core.logging import FILTERED, filter_sensitive_data
from dockmanager.logging import LogLevel, get_logger
from dockmanager.logging.custom_logger import LevelFormatter, application_traceback


class TestFilterSensitiveData:
    def test_masks_request_body_and_headers(self):
        event = {
            "request": {
                "data": {"name": "n1", "tls_key": "-----BEGIN KEY-----", "nested": {"ssh_key": "x"}},
                "headers": {"Authorization": "Bearer abc", "Accept": "application/json"},
            }
        }

        result = filter_sensitive_data(event)

        assert result["request"]["data"]["name"] == "n1"
        assert result["request"]["data"]["tls_key"] == FILTERED
        assert result["request"]["data"]["nested"]["ssh_key"] == FILTERED
        assert result["request"]["headers"]["Authorization"] == FILTERED
        assert result["request"]["headers"]["Accept"] == "application/json"

    def test_masks_contexts_and_extra(self):
        event = {
            "contexts": {"node": {"node_id": "1", "tls_cert": "pem"}},
            "extra": {"items": [{"password": "p"}]},
        }

        result = filter_sensitive_data(event)

        assert result["contexts"]["node"] == {"node_id": "1", "tls_cert": FILTERED}
        assert result["extra"]["items"] == [{"password": FILTERED}]

    def test_event_without_request(self):
        assert filter_sensitive_data({"message": "boom"}) == {"message": "boom"}


class TestCustomLogger:
    def test_get_logger_is_cached(self):
        assert get_logger("tests.cached") is get_logger("tests.cached")

    def test_does_not_propagate(self):
        assert get_logger("tests.propagate").logger.propagate is False

    def test_level_formatter_uses_level_format(self):
        record = logging.LogRecord("tests", logging.INFO, "", 0, "Node is online", (), None)
        record.app_level = LogLevel.GREAT

        text = LevelFormatter().format(record)

        assert "[GREAT]" in text
        assert "Node is online" in text

    def test_context_appended(self, caplog):
        logger = get_logger("tests.context")
        logger.logger.addHandler(caplog.handler)
        try:
            logger.info("Node registered", node_id="abc")
        finally:
            logger.logger.removeHandler(caplog.handler)

        assert "Node registered | node_id=abc" in caplog.text

    def test_traceback_outside_except_is_empty(self):
        assert application_traceback() == ""

    def test_traceback_ends_with_exception(self):
        try:
            raise ValueError("bad value")
        except ValueError:
            text = application_traceback()

        assert text.splitlines()[-1] == "ValueError: bad value"
        assert "test_traceback_ends_with_exception" in text
