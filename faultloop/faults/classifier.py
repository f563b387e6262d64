"""
FaultLoop Faults - Severity classification.

Two independent static tables drive classification:

- the description table maps a code to its category label, description and
  whether the fault halts the request (redirect/loop-break);
- the termination table decides which fault still pending at the end of a
  request is forwarded into the pipeline at all.

The tables disagree on a few codes (``DEPRECATED`` is listed as
8191 in the description table and 8192 in the termination table); each
lookup uses its own table.
"""

from __future__ import annotations

from typing import Optional

from .core import ErrorLevel, Fault, SeverityClassification, frames_from_traceback


_DESCRIPTIONS: dict[int, SeverityClassification] = {
    1: SeverityClassification(
        "FATAL",
        "Fatal run-time error. Execution of the script is halted.",
        True,
    ),
    2: SeverityClassification(
        "WARNING",
        "Non-fatal run-time error. Execution of the script is not halted.",
        False,
    ),
    4: SeverityClassification(
        "PARSE",
        "Compile-time parse errors. Parse errors should only be generated by the parser.",
        True,
    ),
    8: SeverityClassification(
        "NOTICE",
        "Run-time notice. The script found something that might be an error, "
        "but could also happen when running a script normally.",
        False,
    ),
    16: SeverityClassification(
        "CORE_ERROR",
        "Fatal errors that occur during the runtime's initial startup.",
        True,
    ),
    32: SeverityClassification(
        "CORE_WARNING",
        "Warnings (non-fatal errors) that occur during the runtime's initial startup.",
        False,
    ),
    64: SeverityClassification(
        "COMPILE_ERROR",
        "Fatal compile-time errors.",
        True,
    ),
    128: SeverityClassification(
        "COMPILE_WARNING",
        "Compile-time warnings (non-fatal errors).",
        False,
    ),
    256: SeverityClassification(
        "USER_ERROR",
        "Fatal user-generated error. This is like an ERROR set by the "
        "programmer using trigger_fault().",
        True,
    ),
    512: SeverityClassification(
        "USER_WARNING",
        "Non-fatal user-generated warning. This is like a WARNING set by the "
        "programmer using trigger_fault().",
        False,
    ),
    1024: SeverityClassification(
        "USER_NOTICE",
        "User-generated notice. This is like a NOTICE set by the "
        "programmer using trigger_fault().",
        False,
    ),
    2048: SeverityClassification(
        "STRICT",
        "Suggested changes to code which will ensure the best interoperability "
        "and forward compatibility of your code..",
        False,
    ),
    4096: SeverityClassification(
        "RECOVERABLE_ERROR",
        "Catchable fatal error. This is like an ERROR but can be caught by a "
        "user defined handler.",
        True,
    ),
    8191: SeverityClassification(
        "DEPRECATED",
        "Run-time notices. Warnings about code that will not work in future versions.",
        False,
    ),
    16384: SeverityClassification(
        "USER_DEPRECATED",
        "User-generated warning message.",
        False,
    ),
    32767: SeverityClassification(
        "ALL",
        "All errors and warnings, as supported.",
        False,
    ),
}

UNKNOWN = SeverityClassification("ERROR", "Problem with code.", False)

_TERMINATION_HANDLED: dict[int, bool] = {
    1: True,
    2: False,
    4: True,
    8: False,
    16: True,
    32: True,
    64: True,
    128: True,
    256: False,
    512: False,
    1024: False,
    2048: True,
    4096: False,
    8192: False,
    16384: False,
    32767: False,
}

# Checked in order; first isinstance match wins.
_EXCEPTION_LEVELS: list[tuple[type[BaseException], ErrorLevel]] = [
    (SyntaxError, ErrorLevel.PARSE),
    (ImportError, ErrorLevel.COMPILE_ERROR),
    (MemoryError, ErrorLevel.CORE_ERROR),
    (RecursionError, ErrorLevel.CORE_ERROR),
]

_WARNING_LEVELS: list[tuple[type[Warning], ErrorLevel]] = [
    (DeprecationWarning, ErrorLevel.USER_DEPRECATED),
    (PendingDeprecationWarning, ErrorLevel.USER_DEPRECATED),
    (UserWarning, ErrorLevel.USER_WARNING),
    (RuntimeWarning, ErrorLevel.WARNING),
]


def classify(code: int) -> SeverityClassification:
    """
    Classify a raw severity code.

    Args:
        code: Any non-negative integer

    Returns:
        The table entry for ``code``, or the generic ERROR classification
    """
    return _DESCRIPTIONS.get(code, UNKNOWN)


def is_reportable(code: int, mask: int) -> bool:
    """True when ``code`` is selected by the operator's reporting mask."""
    return bool(code & mask)


def handled_at_termination(code: int) -> bool:
    """Whether a fault still pending at request end is forwarded to the pipeline."""
    return _TERMINATION_HANDLED.get(code, False)


def known_codes() -> list[int]:
    """All codes with an explicit classification, ascending."""
    return sorted(_DESCRIPTIONS)


def level_for_exception(exc: BaseException) -> ErrorLevel:
    for exc_type, level in _EXCEPTION_LEVELS:
        if isinstance(exc, exc_type):
            return level
    return ErrorLevel.ERROR


def level_for_warning(category: type[Warning]) -> ErrorLevel:
    for warning_type, level in _WARNING_LEVELS:
        if issubclass(category, warning_type):
            return level
    return ErrorLevel.NOTICE


def fault_from_exception(exc: BaseException, code: Optional[int] = None) -> Fault:
    """
    Convert an uncaught exception into a Fault.

    The fault location is the innermost traceback frame; for a SyntaxError
    it is the offending source line instead.

    Args:
        exc: Exception that escaped the application
        code: Severity code override (derived from the exception type if None)

    Returns:
        Fault carrying the exception's traceback frames
    """
    frames = frames_from_traceback(exc.__traceback__)
    filename, lineno = "", 0
    if isinstance(exc, SyntaxError) and exc.filename:
        filename, lineno = exc.filename, exc.lineno or 0
    elif frames:
        filename, lineno = frames[-1].filename, frames[-1].lineno or 0

    return Fault(
        code=int(code if code is not None else level_for_exception(exc)),
        message=f"{type(exc).__name__}: {exc}",
        filename=filename,
        lineno=lineno,
        frames=frames,
    )
