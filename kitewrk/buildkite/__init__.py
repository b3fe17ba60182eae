"""Adapters for the Buildkite build service.

Both wire protocols sit behind :class:`BuildService`, so the load harness only
ever creates a build and reads its status back.
"""

from .base import API_CHOICES, BuildService, create_client
from .models import PASSED_STATE, SKIPPED_STATES, BuildHandle, BuildSnapshot, JobSnapshot

__all__ = [
    "API_CHOICES",
    "BuildService",
    "create_client",
    "PASSED_STATE",
    "SKIPPED_STATES",
    "BuildHandle",
    "BuildSnapshot",
    "JobSnapshot",
]
