"""
Domain layer for regsync.

Contains pure domain objects with no I/O beyond reading a manifest file:
- ImageReference / ImageLocation: Images and SOURCE/DESTINATION locators
- SystemContext / CopyOptions: Immutable per-registry and per-copy settings
- RepoDescriptor / SyncUnit / CompletionSignal / SyncResult: Sync work and results
- ManifestSummary / ImageInspectInfo: Manifest data for the skip decision

These objects are immutable where possible and provide
serialization methods for JSONL output.
"""

from .reference import (
    DOCKER,
    DIRECTORY,
    ImageReference,
    ImageLocation,
    parse_location,
    parse_docker_reference,
    docker_reference,
    directory_reference,
)
from .context import SystemContext, CopyOptions, parse_credentials
from .manifest import (
    LayerDescriptor,
    ManifestSummary,
    ImageInspectInfo,
    load_manifest,
    layers_unchanged,
)
from .operation import (
    SyncStatus,
    RepoDescriptor,
    SyncUnit,
    CompletionSignal,
    SyncResult,
)

__all__ = [
    'DOCKER',
    'DIRECTORY',
    'ImageReference',
    'ImageLocation',
    'parse_location',
    'parse_docker_reference',
    'docker_reference',
    'directory_reference',
    'SystemContext',
    'CopyOptions',
    'parse_credentials',
    'LayerDescriptor',
    'ManifestSummary',
    'ImageInspectInfo',
    'load_manifest',
    'layers_unchanged',
    'SyncStatus',
    'RepoDescriptor',
    'SyncUnit',
    'CompletionSignal',
    'SyncResult',
]
