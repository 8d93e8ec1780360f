"""
regsync - Mirror container images between registries and directories.

regsync copies every tag of one or more source repositories into a single
destination, skipping tags the destination already holds and bounding how
many copies run at once.

Quick Start:
    from regsync import SyncService, SyncOptions

    service = SyncService()
    result = service.run(
        ["docker://registry.example.com/busybox", "dir:/media/usb"],
        SyncOptions(),
    )
    print(result.images, result.failed)

Sources:
    docker://host/repo[:tag]   - one tag, or every tag of the repository
    dir:/path                  - every image directory under /path
    sources.yaml               - several registries (with --source-yaml)

Destinations:
    docker://host/path         - a registry namespace
    dir:/path                  - one directory per image:tag
"""

__version__ = "0.1.0"

# Domain objects
from .domain import (
    ImageReference,
    ImageLocation,
    SystemContext,
    CopyOptions,
    RepoDescriptor,
    SyncUnit,
    CompletionSignal,
    SyncStatus,
    SyncResult,
)

# Services
from .services import (
    ReferenceResolver,
    RepositoryCollector,
    TagSyncWorker,
    SyncService,
    SyncOptions,
)

# Infrastructure
from .infra import SkopeoClient, Deadline

# Configuration
from .config import load_config, load_source_config

__all__ = [
    "__version__",
    "ImageReference",
    "ImageLocation",
    "SystemContext",
    "CopyOptions",
    "RepoDescriptor",
    "SyncUnit",
    "CompletionSignal",
    "SyncStatus",
    "SyncResult",
    "ReferenceResolver",
    "RepositoryCollector",
    "TagSyncWorker",
    "SyncService",
    "SyncOptions",
    "SkopeoClient",
    "Deadline",
    "load_config",
    "load_source_config",
]
