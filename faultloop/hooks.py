"""
Runtime hooks - explicit registration points that feed faults into the
capture pipeline of the current request.

- ``trigger_fault()``: signal a fault from application code
- ``install_warning_bridge()``: route Python warnings raised during a
  request into ``FaultCapture.on_fault``

Outside a request scope both fall back to default handling: the
``faultloop.runtime`` logger for signalled faults and the previous
``warnings.showwarning`` for warnings.
"""

from __future__ import annotations

import inspect
import logging
import warnings
from typing import Callable

from .capture import current_scope
from .faults.classifier import classify, level_for_warning
from .faults.core import ErrorLevel, frames_from_stack
from .sink import log_level

logger = logging.getLogger("faultloop.runtime")


def default_handling(code: int, message: str, filename: str, lineno: int) -> None:
    """Log a fault the way the runtime would without a capture pipeline."""
    classification = classify(code)
    logger.log(
        log_level(classification),
        f"{classification.category}: {message} in {filename} on line {lineno}",
    )


def trigger_fault(message: str, code: int = ErrorLevel.USER_NOTICE) -> bool:
    """
    Signal a fault at the caller's location.

    Fatal codes (e.g. ``ErrorLevel.USER_ERROR``) end the request: the
    RequestTerminated raised here must be left to propagate.

    Args:
        message: Fault message
        code: Severity code (default USER_NOTICE)

    Returns:
        True if default handling ran as well
    """
    frame = inspect.currentframe().f_back
    try:
        filename, lineno = frame.f_code.co_filename, frame.f_lineno
        frames = frames_from_stack(frame)
    finally:
        del frame

    scope = current_scope()
    if scope is None:
        default_handling(int(code), message, filename, lineno)
        return True

    if scope.capture.on_fault(scope, int(code), message, filename, lineno, frames):
        default_handling(int(code), message, filename, lineno)
        return True
    return False


def install_warning_bridge() -> Callable[[], None]:
    """
    Route warnings into the current request's capture pipeline.

    Returns:
        Callable that restores the previous ``warnings.showwarning``
    """
    previous = warnings.showwarning

    def showwarning(message, category, filename, lineno, file=None, line=None):
        scope = current_scope()
        if scope is None or scope.terminated:
            previous(message, category, filename, lineno, file, line)
            return

        code = int(level_for_warning(category))
        text = f"{category.__name__}: {message}"
        if scope.capture.on_fault(scope, code, text, filename, lineno):
            previous(message, category, filename, lineno, file, line)

    warnings.showwarning = showwarning

    def uninstall() -> None:
        if warnings.showwarning is showwarning:
            warnings.showwarning = previous

    return uninstall
