"""
Load-generation harness for Buildkite.

Creates a batch of builds one after another, follows every build on its own
thread until it finishes, and reports how long builds waited, ran and took
overall once all of them are accounted for.
"""

from .main import main

__all__ = ["main"]
