"""Utilities module initialization"""

from fiskal_cis.utils.formatting import (
    TIMESTAMP_FORMAT,
    format_amount,
    format_bool,
    format_timestamp,
    normalize_amount,
)

__all__ = ["TIMESTAMP_FORMAT", "format_amount", "format_bool", "format_timestamp", "normalize_amount"]
