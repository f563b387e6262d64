"""
Severity taxonomy: description table, termination table, reporting mask,
exception and warning levels.
"""

import inspect

import pytest

from faultloop.faults import (
    UNKNOWN,
    ErrorLevel,
    classify,
    fault_from_exception,
    handled_at_termination,
    is_reportable,
    known_codes,
    level_for_exception,
    level_for_warning,
)


DESCRIPTION_TABLE = [
    (1, "FATAL", True),
    (2, "WARNING", False),
    (4, "PARSE", True),
    (8, "NOTICE", False),
    (16, "CORE_ERROR", True),
    (32, "CORE_WARNING", False),
    (64, "COMPILE_ERROR", True),
    (128, "COMPILE_WARNING", False),
    (256, "USER_ERROR", True),
    (512, "USER_WARNING", False),
    (1024, "USER_NOTICE", False),
    (2048, "STRICT", False),
    (4096, "RECOVERABLE_ERROR", True),
    (8191, "DEPRECATED", False),
    (16384, "USER_DEPRECATED", False),
    (32767, "ALL", False),
]

HANDLED_AT_TERMINATION = [1, 4, 16, 32, 64, 128, 2048]
IGNORED_AT_TERMINATION = [2, 8, 256, 512, 1024, 4096, 8192, 16384, 32767]


# ============================================================================
# Description table
# ============================================================================

class TestClassify:

    @pytest.mark.parametrize("code,category,fatal", DESCRIPTION_TABLE)
    def test_table(self, code, category, fatal):
        c = classify(code)
        assert c.category == category
        assert c.fatal is fatal
        assert c.description

    def test_known_codes_match_table(self):
        assert known_codes() == [code for code, _, _ in DESCRIPTION_TABLE]

    def test_descriptions(self):
        assert classify(1).description == "Fatal run-time error. Execution of the script is halted."
        assert classify(2).description == "Non-fatal run-time error. Execution of the script is not halted."
        assert classify(64).description == "Fatal compile-time errors."
        assert classify(16384).description == "User-generated warning message."

    @pytest.mark.parametrize("code", [0, 3, 8192, 65535, 10**6])
    def test_unknown_codes(self, code):
        c = classify(code)
        assert c == UNKNOWN
        assert c.category == "ERROR"
        assert c.description == "Problem with code."
        assert c.fatal is False

    def test_deprecated_constant_is_not_in_description_table(self):
        # The enum value and the table entry differ by one.
        assert ErrorLevel.DEPRECATED == 8192
        assert classify(ErrorLevel.DEPRECATED) == UNKNOWN
        assert classify(8191).category == "DEPRECATED"

    def test_classification_is_immutable(self):
        c = classify(1)
        with pytest.raises(AttributeError):
            c.fatal = False


# ============================================================================
# Termination table
# ============================================================================

class TestHandledAtTermination:

    @pytest.mark.parametrize("code", HANDLED_AT_TERMINATION)
    def test_handled(self, code):
        assert handled_at_termination(code) is True

    @pytest.mark.parametrize("code", IGNORED_AT_TERMINATION)
    def test_ignored(self, code):
        assert handled_at_termination(code) is False

    @pytest.mark.parametrize("code", [0, 3, 8191, 99999])
    def test_unknown_codes_ignored(self, code):
        assert handled_at_termination(code) is False

    def test_tables_are_independent(self):
        # Non-fatal in the description table, still handled at termination.
        assert classify(32).fatal is False
        assert handled_at_termination(32) is True
        # Fatal in the description table, ignored at termination.
        assert classify(256).fatal is True
        assert handled_at_termination(256) is False


# ============================================================================
# Reporting mask
# ============================================================================

class TestIsReportable:

    @pytest.mark.parametrize("code,mask,expected", [
        (1, 32767, True),
        (1024, 32767, True),
        (1024, 1, False),
        (1, 0, False),
        (8, 8 | 2, True),
        (2, 8, False),
        (3, 1, True),
    ])
    def test_mask(self, code, mask, expected):
        assert is_reportable(code, mask) is expected

    def test_all_levels_reportable_under_all(self):
        for level in ErrorLevel:
            assert is_reportable(level, ErrorLevel.ALL)


# ============================================================================
# Exception and warning levels
# ============================================================================

def _explode():
    line = inspect.currentframe().f_lineno + 1
    raise ValueError(f"boom:{line}")


class TestExceptionLevels:

    @pytest.mark.parametrize("exc,level", [
        (SyntaxError("bad"), ErrorLevel.PARSE),
        (ImportError("nope"), ErrorLevel.COMPILE_ERROR),
        (ModuleNotFoundError("nope"), ErrorLevel.COMPILE_ERROR),
        (MemoryError(), ErrorLevel.CORE_ERROR),
        (RecursionError(), ErrorLevel.CORE_ERROR),
        (ZeroDivisionError(), ErrorLevel.ERROR),
        (KeyError("k"), ErrorLevel.ERROR),
    ])
    def test_level_for_exception(self, exc, level):
        assert level_for_exception(exc) == level

    @pytest.mark.parametrize("category,level", [
        (DeprecationWarning, ErrorLevel.USER_DEPRECATED),
        (PendingDeprecationWarning, ErrorLevel.USER_DEPRECATED),
        (UserWarning, ErrorLevel.USER_WARNING),
        (RuntimeWarning, ErrorLevel.WARNING),
        (ResourceWarning, ErrorLevel.NOTICE),
        (SyntaxWarning, ErrorLevel.NOTICE),
    ])
    def test_level_for_warning(self, category, level):
        assert level_for_warning(category) == level

    def test_warning_levels_are_never_fatal(self):
        for category in (DeprecationWarning, UserWarning, RuntimeWarning, Warning):
            assert classify(level_for_warning(category)).fatal is False


class TestFaultFromException:

    def test_location_is_innermost_frame(self):
        try:
            _explode()
        except ValueError as e:
            fault = fault_from_exception(e)

        line = int(fault.message.rsplit(":", 1)[1])
        assert fault.code == ErrorLevel.ERROR
        assert fault.message == f"ValueError: boom:{line}"
        assert fault.filename == __file__
        assert fault.lineno == line
        assert fault.frames[-1].function == "_explode"
        assert fault.frames[0].function == "test_location_is_innermost_frame"

    def test_syntax_error_location(self):
        try:
            compile("x = (", "snippet.py", "exec")
        except SyntaxError as e:
            fault = fault_from_exception(e)

        assert fault.code == ErrorLevel.PARSE
        assert fault.filename == "snippet.py"
        assert fault.lineno == 1
        assert fault.message.startswith("SyntaxError:")

    def test_code_override(self):
        fault = fault_from_exception(RuntimeError("x"), code=ErrorLevel.USER_ERROR)
        assert fault.code == 256
        assert fault.frames == ()
        assert fault.filename == ""
        assert fault.lineno == 0
