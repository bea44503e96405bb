"""Delivery policy: inline content or offloaded reference."""

from .policy import (
    RESULT_HEADING,
    SIZE_THRESHOLD_KB,
    DeliveryMode,
    OffloadReason,
    decide,
    offload_reason,
    render_inline,
    render_offloaded,
    report_size_kb,
    suggested_filename,
)

__all__ = [
    "RESULT_HEADING",
    "SIZE_THRESHOLD_KB",
    "DeliveryMode",
    "OffloadReason",
    "decide",
    "offload_reason",
    "render_inline",
    "render_offloaded",
    "report_size_kb",
    "suggested_filename",
]
