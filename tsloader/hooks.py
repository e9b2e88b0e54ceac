"""Wiring of the resolve and load hooks.

create_hooks() builds one set of process-lifetime caches and injects them
into both hooks, so the resolver and loader share package.json and
tsconfig.json lookups.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .baseline import FileSystemLoader
from .baseline import FileSystemResolver
from .dependencies import DependencyBus
from .dependencies import ParentChannelReporter
from .loader import Loader
from .metadata import MetadataStore
from .models import LoadContext
from .models import LoadResult
from .models import ResolveContext
from .models import ResolvedModule
from .resolver import Resolver
from .resolver import parse_version
from .settings import LoaderSettings
from .source_maps import SourceMapRegistry
from .transform import EsbuildTransformer
from .transform import Transformer
from .tsconfig import ConfigStore

logger = logging.getLogger(__name__)


@dataclass
class LoaderHooks:
    """The resolve/load entry points plus the state they share."""

    resolver: Resolver
    loader: Loader
    metadata: MetadataStore
    configs: ConfigStore
    dependencies: DependencyBus
    source_maps: SourceMapRegistry
    baseline_resolve: FileSystemResolver
    baseline_load: FileSystemLoader

    async def resolve(self, specifier: str, parent_url: str | None = None) -> ResolvedModule:
        """Resolve against the filesystem baseline."""
        return await self.resolver(specifier, ResolveContext(parent_url=parent_url), self.baseline_resolve)

    async def load(self, url: str, fmt: str | None = None) -> LoadResult:
        """Load against the filesystem baseline."""
        return await self.loader(url, LoadContext(format=fmt), self.baseline_load)


def create_hooks(
    settings: LoaderSettings | None = None,
    transformer: Transformer | None = None,
) -> LoaderHooks:
    """Create resolve/load hooks from settings.

    Raises:
        MalformedMetadataError: The override tsconfig does not parse
    """
    settings = settings or LoaderSettings.from_env()

    metadata = MetadataStore()
    configs = ConfigStore(override_path=settings.tsconfig_path)
    dependencies = DependencyBus()
    if settings.ipc_fd is not None:
        dependencies.subscribe(ParentChannelReporter.from_fd(settings.ipc_fd))
        logger.debug(f"Reporting dependencies to fd {settings.ipc_fd}")

    node_version = parse_version(settings.node_version)
    source_maps = SourceMapRegistry()
    transformer = transformer or EsbuildTransformer(target=f"node{node_version[0]}")

    return LoaderHooks(
        resolver=Resolver(metadata, configs, node_version=node_version),
        loader=Loader(configs, transformer, source_maps=source_maps, dependencies=dependencies),
        metadata=metadata,
        configs=configs,
        dependencies=dependencies,
        source_maps=source_maps,
        baseline_resolve=FileSystemResolver(metadata),
        baseline_load=FileSystemLoader(),
    )
