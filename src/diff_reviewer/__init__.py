"""Diff Reviewer: hunk-by-hunk review of uncommitted git changes."""

__version__ = "0.1.0"
