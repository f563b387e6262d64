"""
FaultLoop Debug - loop-break pages.
"""

from .pages import (
    ADMIN_MESSAGE,
    USER_MESSAGE,
    render_admin_loop_page,
    render_loop_page,
)

__all__ = [
    "ADMIN_MESSAGE",
    "USER_MESSAGE",
    "render_admin_loop_page",
    "render_loop_page",
]
