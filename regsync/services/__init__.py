"""
Service layer for regsync.

Contains the sync orchestration that coordinates domain objects and the
image transport:
- ReferenceResolver: SOURCE locator / YAML entry -> RepoDescriptor
- RepositoryCollector: Multi-registry resolution under the worker pool
- TagSyncWorker: Skip decision, copy and retry for one tag
- SyncService: Whole-run driver and result aggregation
- BoundedPool: Fixed-size fan-out with one completion per unit

Services are the primary API for commands to use.
"""

from .pool import BoundedPool, Completion
from .resolver import ReferenceResolver
from .collector import RepositoryCollector
from .tag_worker import TagSyncWorker, build_destination
from .sync_service import SyncService, SyncOptions

__all__ = [
    'BoundedPool',
    'Completion',
    'ReferenceResolver',
    'RepositoryCollector',
    'TagSyncWorker',
    'build_destination',
    'SyncService',
    'SyncOptions',
]
