"""
FaultLoop Faults - severity taxonomy, fault values and classification.
"""

from .core import (
    ErrorLevel,
    SeverityClassification,
    Frame,
    Fault,
    frames_from_traceback,
    frames_from_stack,
    FaultLoopError,
    ConfigError,
    RequestTerminated,
)
from .classifier import (
    UNKNOWN,
    classify,
    is_reportable,
    handled_at_termination,
    known_codes,
    level_for_exception,
    level_for_warning,
    fault_from_exception,
)

__all__ = [
    "ErrorLevel",
    "SeverityClassification",
    "Frame",
    "Fault",
    "frames_from_traceback",
    "frames_from_stack",
    "FaultLoopError",
    "ConfigError",
    "RequestTerminated",
    "UNKNOWN",
    "classify",
    "is_reportable",
    "handled_at_termination",
    "known_codes",
    "level_for_exception",
    "level_for_warning",
    "fault_from_exception",
]
