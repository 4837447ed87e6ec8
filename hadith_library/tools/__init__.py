"""Atomic tools: each module exposes run() for one job. The CLI wraps them."""

from hadith_library.tools import search, toc, topics

__all__ = ["search", "toc", "topics"]
