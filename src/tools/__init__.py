"""Tool implementations.

Each tool module defines:
- ``TOOL``: the ``ToolDescriptor`` advertised to clients
- ``handler(arguments, context)``: coroutine returning a ``ToolResult``

Modules listed in ``TOOL_MODULES`` are registered at server startup.
"""

from tools import (
    artifacts,
    calculator,
    clock,
    gmail,
    google_analytics,
    google_calendar,
    uber_booking,
    uber_price,
    weather,
    youtube,
)

TOOL_MODULES = [
    weather,
    calculator,
    clock,
    gmail,
    google_calendar,
    google_analytics,
    uber_price,
    uber_booking,
    artifacts,
    youtube,
]

__all__ = ["TOOL_MODULES"]
