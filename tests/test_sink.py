"""
Report persistence: session field, log records, file append, failures.
"""

import logging

import pytest

from faultloop.config import CaptureConfig
from faultloop.faults import SeverityClassification, classify
from faultloop.sink import SEPARATOR, LogSink, log_level

from conftest import make_report


class TestLogLevel:

    @pytest.mark.parametrize("code,level", [
        (1, logging.CRITICAL),
        (256, logging.CRITICAL),
        (2, logging.WARNING),
        (512, logging.WARNING),
        (8, logging.INFO),
        (1024, logging.INFO),
        (16384, logging.INFO),
        (3, logging.ERROR),
    ])
    def test_levels(self, code, level):
        assert log_level(classify(code)) == level

    def test_custom_classification(self):
        assert log_level(SeverityClassification("CUSTOM_WARNING", "", False)) == logging.WARNING


class TestLogSink:

    def test_stores_current_error(self, config, state):
        sink = LogSink(config)
        report = make_report(text="<b>first</b>")
        assert sink.persist(report, state) is report
        assert state.error == "<b>first</b>"

        sink.persist(make_report(text="<b>second</b>"), state)
        assert state.error == "<b>second</b>"

    def test_logs_record(self, config, state, caplog):
        sink = LogSink(config)
        with caplog.at_level(logging.INFO, logger="faultloop.sink"):
            sink.persist(make_report(code=1), state)

        record = caplog.records[-1]
        assert record.name == "faultloop.sink"
        assert record.levelno == logging.CRITICAL
        assert "FATAL: division error (calc:42)" in record.getMessage()

    def test_no_file_by_default(self, state, tmp_path):
        log_file = tmp_path / "errors.html"
        sink = LogSink(CaptureConfig(log_file=str(log_file)))
        sink.persist(make_report(), state)
        assert not log_file.exists()

    def test_appends_to_file(self, state, tmp_path):
        log_file = tmp_path / "logs" / "errors.html"
        sink = LogSink(CaptureConfig(log_to_file=True, log_file=str(log_file)))

        sink.persist(make_report(text="<b>one</b>"), state)
        sink.persist(make_report(text="<b>two</b>"), state)

        content = log_file.read_text(encoding="utf-8")
        assert content == f"<b>one</b>{SEPARATOR}<b>two</b>{SEPARATOR}"

    def test_file_failure_is_swallowed(self, state, tmp_path, caplog):
        # A directory cannot be opened for appending.
        sink = LogSink(CaptureConfig(log_to_file=True, log_file=str(tmp_path)))
        report = make_report(text="<b>kept</b>")

        with caplog.at_level(logging.ERROR, logger="faultloop.sink"):
            result = sink.persist(report, state)

        assert result is report
        assert state.error == "<b>kept</b>"
        assert any("Failed to append report" in r.getMessage() for r in caplog.records)
        assert sink.append(report) is False

    def test_session_failure_is_swallowed(self, config, caplog):
        class BrokenState:
            @property
            def error(self):
                return None

            @error.setter
            def error(self, value):
                raise RuntimeError("store unavailable")

        sink = LogSink(config)
        report = make_report()
        with caplog.at_level(logging.ERROR, logger="faultloop.sink"):
            assert sink.persist(report, BrokenState()) is report
        assert any("Failed to store report" in r.getMessage() for r in caplog.records)
