"""
FaultLoop Faults - Core types and severity taxonomy.

Defines:
- ErrorLevel (flat severity codes)
- Frame (one rendered call-stack entry)
- Fault (immutable captured fault)
- SeverityClassification (category/description/fatal triple)
- Library exceptions (FaultLoopError, ConfigError, RequestTerminated)
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from types import FrameType, TracebackType
from typing import TYPE_CHECKING, Any, Iterable, Optional

if TYPE_CHECKING:
    from ..response import Response


# ============================================================================
# Severity codes
# ============================================================================

class ErrorLevel(IntEnum):
    """
    Flat severity codes.

    Codes are single bits so that an operator-supplied reporting mask can
    select any subset of them. ``ALL`` is the union of every code.
    """
    ERROR = 1
    WARNING = 2
    PARSE = 4
    NOTICE = 8
    CORE_ERROR = 16
    CORE_WARNING = 32
    COMPILE_ERROR = 64
    COMPILE_WARNING = 128
    USER_ERROR = 256
    USER_WARNING = 512
    USER_NOTICE = 1024
    STRICT = 2048
    RECOVERABLE_ERROR = 4096
    DEPRECATED = 8192
    USER_DEPRECATED = 16384
    ALL = 32767


@dataclass(frozen=True, slots=True)
class SeverityClassification:
    """Result of classifying a severity code."""
    category: str
    description: str
    fatal: bool


# ============================================================================
# Frames
# ============================================================================

@dataclass(frozen=True, slots=True)
class Frame:
    """
    One call-stack entry.

    Attributes:
        filename: Absolute source path
        lineno: Line number being executed (None if unknown)
        function: Function name
        owner: Enclosing class name, empty for plain functions
    """
    filename: str
    lineno: Optional[int]
    function: str
    owner: str = ""

    @classmethod
    def from_frame(cls, frame: FrameType, lineno: Optional[int] = None) -> Frame:
        code = frame.f_code
        qualname = getattr(code, "co_qualname", code.co_name)
        owner = ""
        if "." in qualname:
            owner = qualname.rsplit(".", 1)[0]
            if owner.endswith("<locals>"):
                owner = ""
        return cls(
            filename=code.co_filename,
            lineno=lineno if lineno is not None else frame.f_lineno,
            function=code.co_name,
            owner=owner,
        )


def frames_from_traceback(tb: Optional[TracebackType]) -> tuple[Frame, ...]:
    """Frames of a traceback, outermost call first."""
    return tuple(Frame.from_frame(f, lineno) for f, lineno in traceback.walk_tb(tb))


def frames_from_stack(start: Optional[FrameType]) -> tuple[Frame, ...]:
    """
    Frames of the live call stack above ``start``, outermost call first.

    ``traceback.walk_stack`` yields the innermost frame first; the result is
    reversed into call order.
    """
    frames = [Frame.from_frame(f, lineno) for f, lineno in traceback.walk_stack(start)]
    frames.reverse()
    return tuple(frames)


# ============================================================================
# Fault
# ============================================================================

@dataclass(frozen=True, slots=True)
class Fault:
    """
    A single captured fault.

    Faults are values, not exceptions: they are built once by FaultCapture
    from a signalled fault, an uncaught exception or a Python warning, and
    never mutated afterwards.

    Attributes:
        code: Severity code (see ErrorLevel)
        message: Human-readable message
        filename: Source file where the fault was raised
        lineno: Source line where the fault was raised
        frames: Native stack frames, outermost first (None = capture later)
        captured_at: When the fault was captured
    """
    code: int
    message: str
    filename: str
    lineno: int
    frames: Optional[tuple[Frame, ...]] = None
    captured_at: datetime = field(default_factory=datetime.now)

    def with_frames(self, frames: Iterable[Frame]) -> Fault:
        return Fault(
            code=self.code,
            message=self.message,
            filename=self.filename,
            lineno=self.lineno,
            frames=tuple(frames),
            captured_at=self.captured_at,
        )

    def flatten(self) -> list[tuple[str, Any]]:
        """Key/value view used by the diagnostics renderer."""
        return [
            ("type", self.code),
            ("message", self.message),
            ("file", self.filename),
            ("line", self.lineno),
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "file": self.filename,
            "line": self.lineno,
            "captured_at": self.captured_at.isoformat(),
            "stack_depth": len(self.frames) if self.frames else 0,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message} ({self.filename}:{self.lineno})"


# ============================================================================
# Exceptions
# ============================================================================

class FaultLoopError(Exception):
    """Base class for errors raised by faultloop itself."""


class ConfigError(FaultLoopError):
    """Raised when configuration validation fails."""


class RequestTerminated(BaseException):
    """
    Ends the current request with an already-built response.

    Raised out of application code after a fatal fault has been handled.
    Derives from BaseException so that ``except Exception`` blocks in the
    application do not swallow it; FaultCaptureMiddleware catches it.
    """

    def __init__(self, response: Response):
        super().__init__(f"request terminated with status {response.status}")
        self.response = response
