"""
Log sinks.

    ConsoleSink        formatted lines on stdout
    RotatingFileSink   JSON lines, rotated by hour, size and age
    RemoteSink         batched uploads to Google Cloud Logging
    CaptureSink        test capture, no I/O
"""

from .base import BaseSink, orjson_dumps
from .capture import Capture, CaptureSink
from .console import ConsoleSink
from .file import RotatingFileSink, safe_prefix
from .registry import SinkRegistry, SinkSet
from .remote import SEVERITY_MAP, RemoteSink, is_ignorable_error

__all__ = [
    "BaseSink",
    "Capture",
    "CaptureSink",
    "ConsoleSink",
    "RemoteSink",
    "RotatingFileSink",
    "SEVERITY_MAP",
    "SinkRegistry",
    "SinkSet",
    "is_ignorable_error",
    "orjson_dumps",
    "safe_prefix",
]
