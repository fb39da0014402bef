"""
Wire-level connection handling.

This module contains the lowest-level communication components:
- LineConnection - One TCP connection carrying newline-delimited text
- Line framing and decoding
- Connection open/close
"""

from .connection import LineConnection, ConnectionConst

__all__ = [
    "LineConnection",
    "ConnectionConst",
]
