"""
Repository collector for regsync.

Resolves every repository of a multi-registry source YAML file, one
resolver unit per repository, under the bounded worker pool.
"""

import logging
from typing import Dict, List, Optional

from ..config import RegistryConfig
from ..domain.context import SystemContext
from ..domain.operation import RepoDescriptor
from .pool import BoundedPool, Completion
from .resolver import ReferenceResolver

logger = logging.getLogger(__name__)


def registry_context(base: SystemContext, registry_cfg: RegistryConfig) -> SystemContext:
    """Derive a registry's context from ``base``; ``base`` is left untouched."""
    return base.with_overrides(
        tls_verify=registry_cfg.tls_verify,
        cert_dir=registry_cfg.cert_dir,
        username=registry_cfg.username,
        password=registry_cfg.password,
    )


class RepositoryCollector:
    """
    Collects RepoDescriptors for every registry of a source YAML file.

    Failed or empty repositories are logged and left out; they never
    abort the collection.

    Example:
        collector = RepositoryCollector(ReferenceResolver(client))
        repos = collector.collect_all(load_source_config("sources.yaml"), ctx)
    """

    def __init__(self, resolver: ReferenceResolver, max_workers: Optional[int] = None):
        self.resolver = resolver
        self.max_workers = max_workers

    def collect_all(
        self,
        source_config: Dict[str, RegistryConfig],
        context: SystemContext
    ) -> List[RepoDescriptor]:
        """
        Resolve every configured repository.

        Args:
            source_config: Registry host -> settings and images
            context: Base context shared by all registries

        Returns:
            One descriptor per successfully resolved repository
        """
        repo_list: List[RepoDescriptor] = []

        with BoundedPool(self.max_workers) as pool:
            for registry, registry_cfg in source_config.items():
                if not registry_cfg.images:
                    logger.warning(f"No images specified for registry {registry}")
                    continue

                registry_ctx = registry_context(context, registry_cfg)

                for repo_name, tags in registry_cfg.images.items():
                    finished = pool.submit(
                        (registry, repo_name),
                        self.resolver.resolve_repository,
                        registry, repo_name, list(tags), registry_ctx,
                    )
                    self._accept(finished, repo_list)

                # Drain before moving to the next registry
                self._accept(pool.drain(), repo_list)

        return repo_list

    @staticmethod
    def _accept(completions: List[Completion], repo_list: List[RepoDescriptor]) -> None:
        for completion in completions:
            registry, repo_name = completion.key
            if not completion.ok:
                logger.error(
                    f"Error processing repo {repo_name} (registry {registry}), skipping: "
                    f"{completion.error}"
                )
                continue
            repo_list.append(completion.result)
