"""Reporters for upload progress and results."""

from __future__ import annotations

from canyon_uploader.reporters.terminal import reporter

__all__ = ["reporter"]
