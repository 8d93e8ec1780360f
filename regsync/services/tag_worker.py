"""
Tag sync worker for regsync.

Syncs one source tag: works out the destination, inspects the source,
skips the copy when a directory destination already holds the same
layers or the architecture does not match, and otherwise copies with
retries. Always returns exactly one CompletionSignal.
"""

import logging
import os
import posixpath
from typing import Optional

from ..config import MAX_RETRIES
from ..domain.manifest import ImageInspectInfo, layers_unchanged, load_manifest, manifest_path
from ..domain.operation import CompletionSignal, SyncStatus, SyncUnit
from ..domain.reference import (
    ImageLocation,
    ImageReference,
    directory_reference,
    parse_docker_reference,
)
from ..errors import (
    CopyError,
    DestinationParseError,
    InspectError,
    ReferenceParseError,
    SyncTimeoutError,
    TransportError,
    UnsupportedSyncError,
)
from ..infra.deadline import Deadline
from ..infra.skopeo_client import SkopeoClient

logger = logging.getLogger(__name__)


def build_destination(
    image_ref: ImageReference,
    destination: ImageLocation,
    dir_base_path: Optional[str] = None
) -> ImageReference:
    """
    Join the destination base with the source image's repo/tag path.

    - registry -> directory: ``<root>/<domain>/<path>:<tag>``
    - registry -> registry: ``<host>/<path>/<repo basename>:<tag>``
    - directory -> registry: ``<host>/<path>/<dir relative to base path>``

    Raises:
        DestinationParseError: the joined name is not a valid reference
        UnsupportedSyncError: directory -> directory
    """
    if destination.is_directory:
        if image_ref.is_directory:
            raise UnsupportedSyncError("Syncing from 'dir:' to 'dir:' is not supported")
        return directory_reference(os.path.join(destination.path, image_ref.tagged_name))

    if image_ref.is_directory:
        relative = os.path.relpath(image_ref.path, dir_base_path or os.path.dirname(image_ref.path))
        if relative == os.curdir:
            relative = os.path.basename(os.path.normpath(image_ref.path))
        suffix = relative.replace(os.sep, "/")
    else:
        suffix = f"{posixpath.basename(image_ref.repository)}:{image_ref.tag}"

    name = posixpath.join(destination.docker_name, suffix)
    try:
        return parse_docker_reference(name)
    except ReferenceParseError as e:
        raise DestinationParseError(f"Invalid destination '{name}': {e}")


class TagSyncWorker:
    """
    Syncs a single tag from source to destination.

    Example:
        worker = TagSyncWorker(SkopeoClient(), deadline)
        signal = worker.sync_one(unit)
        if not signal.success:
            print(signal.error)
    """

    def __init__(
        self,
        transport: Optional[SkopeoClient] = None,
        deadline: Optional[Deadline] = None,
        max_retries: int = MAX_RETRIES
    ):
        """
        Initialize TagSyncWorker.

        Args:
            transport: Image transport (creates a SkopeoClient if None)
            deadline: Shared run deadline
            max_retries: Extra copy attempts after the first failure
        """
        self.transport = transport or SkopeoClient()
        self.deadline = deadline
        self.max_retries = max_retries

    def sync_one(self, unit: SyncUnit) -> CompletionSignal:
        """Sync ``unit``'s tag; never raises for transport failures."""
        source = str(unit.image_ref)
        attempt = 0

        while True:
            attempt += 1

            try:
                dest_ref = build_destination(unit.image_ref, unit.destination, unit.repo.dir_base_path)
            except (ReferenceParseError, UnsupportedSyncError) as e:
                logger.error(f"Error building destination for {source}: {e}")
                return CompletionSignal(SyncStatus.FAILED, source, error=e, attempts=attempt)

            try:
                info = self.transport.inspect(unit.image_ref, unit.repo.context, self.deadline)
            except TransportError as e:
                logger.error(f"Error inspecting {source}: {e}")
                error = e if isinstance(e, SyncTimeoutError) else InspectError(f"{source}: {e}")
                return CompletionSignal(
                    SyncStatus.FAILED, source, destination=str(dest_ref), error=error, attempts=attempt
                )

            reason = self.skip_reason(info, dest_ref, unit)
            if reason:
                logger.info(f"Skipping {source}: {reason}")
                return CompletionSignal(
                    SyncStatus.SKIPPED, source, destination=str(dest_ref), attempts=attempt, reason=reason
                )

            logger.info(f"Copying image tag {unit.label}: {source} -> {dest_ref}")
            try:
                self.transport.copy(unit.image_ref, dest_ref, unit.copy_options, self.deadline)
            except SyncTimeoutError as e:
                logger.error(f"Timed out copying {source}: {e}")
                return CompletionSignal(
                    SyncStatus.FAILED, source, destination=str(dest_ref), error=e, attempts=attempt
                )
            except TransportError as e:
                logger.error(f"Error copying tag '{source}'; Try: {attempt}: {e}")
                if attempt <= self.max_retries:
                    continue
                return CompletionSignal(
                    SyncStatus.FAILED,
                    source,
                    destination=str(dest_ref),
                    error=CopyError(f"{source}: {e}", attempts=attempt),
                    attempts=attempt,
                )

            return CompletionSignal(SyncStatus.SUCCESS, source, destination=str(dest_ref), attempts=attempt)

    def skip_reason(self, info: ImageInspectInfo, dest_ref: ImageReference, unit: SyncUnit) -> Optional[str]:
        """Why the copy can be omitted, or None when it is needed."""
        if dest_ref.is_directory and self._destination_unchanged(info, dest_ref):
            return "unchanged"

        override_arch = unit.repo.context.override_arch
        if override_arch and info.architecture and override_arch != info.architecture:
            return f"architecture {info.architecture} does not match {override_arch}"
        return None

    @staticmethod
    def _destination_unchanged(info: ImageInspectInfo, dest_ref: ImageReference) -> bool:
        path = manifest_path(dest_ref.path)
        if not path.is_file():
            return False

        logger.info(f"'{path}' already exists, comparing layer digests")
        if not info.layers:
            return True

        try:
            existing = load_manifest(path)
        except (OSError, ValueError) as e:
            logger.warning(f"Cannot read {path}, copying again: {e}")
            return False
        return layers_unchanged(info.layers, existing)
