"""Core application components."""

from __future__ import annotations

from .config import Settings, get_settings, settings
from .exceptions import AnalyzerError, ErrorKind
from .logging import get_logger

__all__ = ["Settings", "get_settings", "settings", "AnalyzerError", "ErrorKind", "get_logger"]
