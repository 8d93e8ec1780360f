"""
Sync unit and result domain objects for regsync.

RepoDescriptor is one source to sync from, SyncUnit is the work item for
one tag, CompletionSignal is what a tag worker reports back, and
SyncResult aggregates the signals of a whole run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple

from .context import CopyOptions, SystemContext
from .reference import ImageLocation, ImageReference


class SyncStatus(Enum):
    """Outcome of one tag unit."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RepoDescriptor:
    """
    A source repository (or directory tree) and the tagged images to sync.

    Never empty: the resolver raises NoImagesFoundError instead of
    producing a descriptor without references.
    """
    context: SystemContext
    tagged_images: Tuple[ImageReference, ...]
    dir_base_path: Optional[str] = None
    name: str = ""

    def __len__(self) -> int:
        return len(self.tagged_images)


@dataclass(frozen=True)
class SyncUnit:
    """Work item for one tag. Built right before dispatch."""
    counter: int
    image_ref: ImageReference
    destination: ImageLocation
    repo: RepoDescriptor
    copy_options: CopyOptions

    @property
    def label(self) -> str:
        return f"{self.counter + 1}/{len(self.repo.tagged_images)}"


@dataclass(frozen=True)
class CompletionSignal:
    """
    Result of one tag unit, emitted exactly once.

    Every signal marks the unit as done; ``success`` is False only when the
    tag could not be synced.
    """
    status: SyncStatus
    reference: str
    destination: Optional[str] = None
    error: Optional[Exception] = None
    attempts: int = 0
    reason: Optional[str] = None  # why a tag was skipped

    @property
    def done(self) -> bool:
        return True

    @property
    def success(self) -> bool:
        return self.status != SyncStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'reference': self.reference,
            'status': self.status.value,
            'attempts': self.attempts,
        }
        if self.destination:
            result['destination'] = self.destination
        if self.reason:
            result['reason'] = self.reason
        if self.error:
            result['error'] = str(self.error)
        return result


@dataclass
class SyncResult:
    """
    Summary of a sync run.

    ``images`` counts every dispatched tag unit whatever its outcome;
    ``copied``, ``skipped`` and ``failed`` break that total down.
    """
    images: int = 0
    sources: int = 0
    copied: int = 0
    skipped: int = 0
    failed: int = 0
    details: List[CompletionSignal] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if no tag failed."""
        return self.failed == 0

    def add_signal(self, signal: CompletionSignal) -> None:
        """Record a completion and update counts."""
        self.details.append(signal)

        if signal.status == SyncStatus.SUCCESS:
            self.copied += 1
        elif signal.status == SyncStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            self.errors.append(f"{signal.reference}: {signal.error}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': 'summary',
            'images': self.images,
            'sources': self.sources,
            'copied': self.copied,
            'skipped': self.skipped,
            'failed': self.failed,
            'errors': self.errors,
        }
