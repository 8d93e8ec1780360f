"""
Infrastructure layer for regsync.

Contains abstractions for external systems:
- SkopeoClient: Image transport (list tags, inspect, copy) via skopeo
- Deadline: Run-wide timeout shared by every transport call

These provide clean interfaces that can be mocked for testing.
"""

from .deadline import Deadline
from .skopeo_client import SkopeoClient, classify_error

__all__ = [
    'Deadline',
    'SkopeoClient',
    'classify_error',
]
