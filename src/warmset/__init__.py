"""warmset: chunked model binding, warm-set cache and deterministic generation."""

from __future__ import annotations

__version__ = "0.1.0"
