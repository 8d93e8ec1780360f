"""
Sync service for regsync.

Drives a whole registry sync: resolves the source into repositories,
dispatches one tag worker per image under the bounded worker pool and
aggregates their completion signals.
"""

import logging
import os
import posixpath
from dataclasses import dataclass, field
from typing import Dict, Any, Generator, List, Optional, Sequence

from ..config import MAX_RETRIES, load_config, load_source_config
from ..domain.context import CopyOptions, SystemContext
from ..domain.operation import CompletionSignal, RepoDescriptor, SyncResult, SyncStatus, SyncUnit
from ..domain.reference import ImageLocation, normalize_repository, parse_location
from ..errors import (
    DestinationParseError,
    ReferenceParseError,
    SourceParseError,
    UnsupportedSyncError,
    UsageError,
)
from ..exit_codes import ConfigError
from ..infra.deadline import Deadline
from ..infra.skopeo_client import SkopeoClient
from .collector import RepositoryCollector
from .pool import BoundedPool, Completion
from .resolver import ReferenceResolver
from .tag_worker import TagSyncWorker

logger = logging.getLogger(__name__)


@dataclass
class SyncOptions:
    """Options for a sync run."""
    source_ctx: SystemContext = field(default_factory=SystemContext)
    destination_ctx: SystemContext = field(default_factory=SystemContext)
    remove_signatures: bool = False
    sign_by: Optional[str] = None
    source_yaml: bool = False
    policy_path: Optional[str] = None
    insecure_policy: bool = False
    command_timeout: Optional[float] = None
    max_workers: Optional[int] = None
    max_retries: int = MAX_RETRIES


class SyncService:
    """
    Service for syncing images from one or more sources to a destination.

    Example:
        service = SyncService()
        options = SyncOptions(remove_signatures=True)

        for progress in service.sync("docker://quay.io/foo/bar", "dir:/mnt/mirror", options):
            print(progress)  # "✓ docker://quay.io/foo/bar:1.0"

        result = service.last_result
        print(f"Synced {result.images} images from {result.sources} sources")
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        transport: Optional[SkopeoClient] = None
    ):
        """
        Initialize SyncService.

        Args:
            config: Configuration dict (loads default if None)
            transport: Image transport (creates a SkopeoClient if None)
        """
        self.config = config or load_config()
        skopeo_path = self.config.get('skopeo', {}).get('path', 'skopeo')
        self.transport = transport or SkopeoClient(executable=skopeo_path)
        self.last_result: Optional[SyncResult] = None

    def run(self, args: Sequence[str], options: SyncOptions) -> SyncResult:
        """
        Run a sync to completion, logging progress.

        Args:
            args: Exactly SOURCE and DESTINATION

        Raises:
            UsageError: wrong number of arguments
        """
        if len(args) != 2:
            raise UsageError("Exactly two arguments expected")

        gen = self.sync(args[0], args[1], options)
        while True:
            try:
                logger.debug(next(gen))
            except StopIteration as stop:
                return stop.value

    def sync(
        self,
        source: str,
        destination: str,
        options: SyncOptions
    ) -> Generator[str, None, SyncResult]:
        """
        Sync every image of ``source`` into ``destination``.

        Yields progress messages, returns SyncResult.

        Raises:
            ConfigError: trust policy or source YAML cannot be loaded
            DestinationParseError / SourceParseError: malformed locators
            UnsupportedSyncError: directory to directory
            NoImagesFoundError: the source holds nothing to sync
            TransportError: tag listing of a single source failed
        """
        result = SyncResult()
        self.last_result = result

        self._check_policy(options)
        deadline = Deadline(options.command_timeout)

        try:
            dest_location = parse_location(destination)
        except ReferenceParseError as e:
            raise DestinationParseError(f"Error while parsing destination: {e}")
        self._check_destination(dest_location)

        resolver = ReferenceResolver(self.transport, deadline)
        repo_list = self._resolve_sources(resolver, source, dest_location, options)
        result.sources = len(repo_list)
        yield f"Resolved {sum(len(r) for r in repo_list)} images from {len(repo_list)} sources"

        worker = TagSyncWorker(self.transport, deadline, max_retries=options.max_retries)

        with BoundedPool(options.max_workers) as pool:
            for repo in repo_list:
                copy_options = CopyOptions(
                    source_ctx=repo.context,
                    destination_ctx=options.destination_ctx,
                    remove_signatures=options.remove_signatures,
                    sign_by=options.sign_by,
                    policy_path=options.policy_path,
                    insecure_policy=options.insecure_policy,
                )

                for counter, ref in enumerate(repo.tagged_images):
                    unit = SyncUnit(counter, ref, dest_location, repo, copy_options)
                    for completion in pool.submit(str(ref), worker.sync_one, unit):
                        yield self._record(result, completion)
                    result.images += 1

                # Drain before moving to the next repository
                for completion in pool.drain():
                    yield self._record(result, completion)

        logger.info(f"registry-synced {result.images} images from {result.sources} sources")
        return result

    def _resolve_sources(
        self,
        resolver: ReferenceResolver,
        source: str,
        dest_location: ImageLocation,
        options: SyncOptions
    ) -> List[RepoDescriptor]:
        if options.source_yaml:
            source_config = load_source_config(source)
            collector = RepositoryCollector(resolver, options.max_workers)
            return collector.collect_all(source_config, options.source_ctx)

        try:
            source_location = parse_location(source)
        except ReferenceParseError as e:
            raise SourceParseError(f"Error while parsing source: {e}")

        if source_location.is_directory and dest_location.is_directory:
            raise UnsupportedSyncError(
                "registry sync from 'dir:' to 'dir:' not implemented, use something like rsync instead"
            )

        return [resolver.resolve(source_location, options.source_ctx)]

    @staticmethod
    def _check_destination(location: ImageLocation) -> None:
        """Reject a registry destination no repository could be pushed under."""
        if location.is_directory:
            return
        try:
            normalize_repository(posixpath.join(location.docker_name, "image"))
        except ReferenceParseError as e:
            raise DestinationParseError(f"Invalid destination '{location}': {e}")

    @staticmethod
    def _check_policy(options: SyncOptions) -> None:
        if options.policy_path and not os.path.isfile(options.policy_path):
            raise ConfigError(f"Error loading trust policy: {options.policy_path} not found")

    @staticmethod
    def _record(result: SyncResult, completion: Completion) -> str:
        """Fold one completion into ``result`` and describe it."""
        if completion.ok:
            signal = completion.result
        else:
            signal = CompletionSignal(SyncStatus.FAILED, str(completion.key), error=completion.error)
            logger.error(f"Unexpected error syncing {completion.key}: {completion.error}")
        result.add_signal(signal)

        if signal.status == SyncStatus.SUCCESS:
            return f"  ✓ {signal.reference} -> {signal.destination}"
        if signal.status == SyncStatus.SKIPPED:
            return f"  - {signal.reference} ({signal.reason})"
        return f"  ✗ {signal.reference}: {signal.error}"
