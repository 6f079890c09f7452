"""Diff Reviewer integrations module."""

from diff_reviewer.integrations.git import GitAdapter

__all__ = ["GitAdapter"]
