"""Command-line clients for Taverna 2 Server."""

from __future__ import annotations

__version__ = "0.4.0"
