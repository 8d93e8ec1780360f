"""
Reference resolver for regsync.

Turns a SOURCE locator, or one repository entry of a source YAML file,
into a RepoDescriptor holding every tagged image to sync.
"""

import logging
import os
from typing import Iterable, List, Optional

from ..domain.context import SystemContext
from ..domain.manifest import MANIFEST_FILENAME
from ..domain.operation import RepoDescriptor
from ..domain.reference import (
    ImageLocation,
    ImageReference,
    directory_reference,
    docker_reference,
    normalize_repository,
    parse_docker_reference,
)
from ..errors import (
    NoImagesFoundError,
    ReferenceParseError,
    SourceParseError,
    TagParseError,
)
from ..infra.deadline import Deadline
from ..infra.skopeo_client import SkopeoClient

logger = logging.getLogger(__name__)


class ReferenceResolver:
    """
    Resolves sources into tagged image references.

    Tags are listed through the image transport when none are given.

    Example:
        resolver = ReferenceResolver(SkopeoClient())
        repo = resolver.resolve(parse_location("docker://quay.io/foo/bar"), ctx)
        print(len(repo.tagged_images))
    """

    def __init__(self, transport: Optional[SkopeoClient] = None, deadline: Optional[Deadline] = None):
        """
        Initialize ReferenceResolver.

        Args:
            transport: Image transport (creates a SkopeoClient if None)
            deadline: Shared run deadline for tag listing
        """
        self.transport = transport or SkopeoClient()
        self.deadline = deadline

    def resolve(self, location: ImageLocation, context: SystemContext) -> RepoDescriptor:
        """
        Resolve a SOURCE locator.

        Raises:
            SourceParseError: the locator does not name a valid repository
            NoImagesFoundError: nothing to sync
            TransportError: tag listing failed
        """
        if location.is_directory:
            base_path = location.path
            refs = self.images_from_directory(base_path)
            return self._descriptor(context, refs, base_path, dir_base_path=base_path)

        try:
            source_ref = parse_docker_reference(location.docker_name)
        except ReferenceParseError as e:
            raise SourceParseError(f"Error while parsing source: {e}")

        if source_ref.tag:
            refs = [source_ref]
        else:
            refs = self.images_from_registry(source_ref.repository, context)
        return self._descriptor(context, refs, source_ref.repository)

    def resolve_repository(
        self,
        registry: str,
        repo_name: str,
        tags: Iterable[str],
        context: SystemContext
    ) -> RepoDescriptor:
        """
        Resolve one ``images`` entry of a source YAML file.

        An empty tag list means every tag in the repository.

        Raises:
            ReferenceParseError: registry/repo name is invalid
            NoImagesFoundError: no usable tags
            TransportError: tag listing failed
        """
        logger.info(f"Processing repo {repo_name} (registry {registry})")
        repository = normalize_repository(f"{registry}/{repo_name}")

        tags = list(tags)
        if tags:
            refs = self._references_for_tags(repository, tags)
        else:
            logger.info(f"Querying registry {registry} for tags of {repo_name}")
            refs = self.images_from_registry(repository, context)

        if not refs:
            logger.warning(f"No tags to sync found for {repo_name} (registry {registry})")
        return self._descriptor(context, refs, repository)

    def images_from_registry(self, repository: str, context: SystemContext) -> List[ImageReference]:
        """List every tag of ``repository`` and turn each into a reference."""
        repo_ref = ImageReference(transport="docker", repository=repository)
        tags = self.transport.list_tags(repo_ref, context, self.deadline)
        return self._references_for_tags(repository, tags)

    def images_from_directory(self, base_path: str) -> List[ImageReference]:
        """
        Find image directories (those holding a manifest.json) under ``base_path``.

        Raises:
            SourceParseError: base path is not a directory
        """
        if not os.path.isdir(base_path):
            raise SourceParseError(f"Source directory does not exist: {base_path}")

        refs = []
        for root, dirs, files in os.walk(base_path):
            dirs.sort()
            if MANIFEST_FILENAME in files:
                refs.append(directory_reference(root))
        return refs

    def _references_for_tags(self, repository: str, tags: Iterable[str]) -> List[ImageReference]:
        refs = []
        for tag in tags:
            try:
                refs.append(docker_reference(repository, tag))
            except TagParseError as e:
                logger.error(f"Error processing tag {repository}:{tag}, skipping: {e}")
        return refs

    @staticmethod
    def _descriptor(
        context: SystemContext,
        refs: List[ImageReference],
        name: str,
        dir_base_path: Optional[str] = None
    ) -> RepoDescriptor:
        if not refs:
            raise NoImagesFoundError(f"No images to sync found in {name}")
        return RepoDescriptor(
            context=context,
            tagged_images=tuple(refs),
            dir_base_path=dir_base_path,
            name=name,
        )
