"""
Report persistence.

LogSink stores each report as the session's current error, emits a logging
record, and optionally appends the report to an HTML log file. It never
raises: persistence is best-effort and must not mask the response the fault
produces.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .faults.core import SeverityClassification
from .report import DiagnosticReport
from .sessions.state import LoopState

if TYPE_CHECKING:
    from .config import CaptureConfig


SEPARATOR = "<hr><br />"


def log_level(classification: SeverityClassification) -> int:
    """Logging level for a classified fault."""
    if classification.fatal:
        return logging.CRITICAL
    if "WARNING" in classification.category:
        return logging.WARNING
    if classification.category == "ERROR":
        return logging.ERROR
    return logging.INFO


class LogSink:
    """
    Persists reports.

    Args:
        config: Capture configuration (``log_to_file``/``log_file``)
        logger: Logger for report records (default ``faultloop.sink``)
    """

    def __init__(self, config: CaptureConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger("faultloop.sink")

    def persist(self, report: DiagnosticReport, state: LoopState) -> DiagnosticReport:
        """
        Store ``report`` as the current error and log it.

        Returns:
            The same report, whether or not every target succeeded
        """
        try:
            state.error = report.text
        except Exception as e:
            self.logger.error(f"Failed to store report in session: {e}", exc_info=True)

        fault = report.fault
        self.logger.log(
            log_level(report.classification),
            f"{report.classification.category}: {fault.message} ({fault.filename}:{fault.lineno})",
        )

        if self.config.log_to_file:
            self.append(report)

        return report

    def append(self, report: DiagnosticReport) -> bool:
        """Append the report to the log file. Returns False on failure."""
        path = Path(self.config.log_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(report.text + SEPARATOR)
        except Exception as e:
            self.logger.error(f"Failed to append report to {path}: {e}", exc_info=True)
            return False
        return True
