"""Load orchestrator.

Wraps the baseline load step: reports the dependency, forces JSON import
attributes, transforms TypeScript/JSX/JSON sources into ES modules and
reattaches their source maps.
"""

from __future__ import annotations

import logging

from .dependencies import DependencyBus
from .formats import is_governed_source
from .models import DefaultLoad
from .models import DependencyMessage
from .models import LoadContext
from .models import LoadResult
from .paths import is_file_url
from .paths import strip_query
from .paths import url_to_path
from .source_maps import SourceMapRegistry
from .transform import Transformer
from .tsconfig import ConfigStore

logger = logging.getLogger(__name__)


def _as_text(source: str | bytes) -> str:
    if isinstance(source, bytes):
        return source.decode("utf-8", errors="replace")
    return source


class Loader:
    """Load hook. Invoked once per resolved module URL."""

    def __init__(
        self,
        configs: ConfigStore,
        transformer: Transformer,
        source_maps: SourceMapRegistry | None = None,
        dependencies: DependencyBus | None = None,
    ) -> None:
        self.configs = configs
        self.transformer = transformer
        self.source_maps = source_maps if source_maps is not None else SourceMapRegistry()
        self.dependencies = dependencies

    async def __call__(self, url: str, context: LoadContext, default_load: DefaultLoad) -> LoadResult:
        return await self.load(url, context, default_load)

    async def load(self, url: str, context: LoadContext, default_load: DefaultLoad) -> LoadResult:
        """Load ``url`` and transform it when it is a governed source or JSON.

        Raises:
            TransformError: The transformer rejected the source
            MalformedMetadataError: The governing tsconfig is malformed
        """
        if self.dependencies is not None:
            self.dependencies.publish(DependencyMessage(path=url))

        if strip_query(url).endswith(".json"):
            context.import_attributes["type"] = "json"

        loaded = await default_load(url, context)
        if not loaded.source:
            return loaded

        file_path = str(url_to_path(strip_query(url))) if is_file_url(url) else url

        if loaded.format == "json" or is_governed_source(url):
            tsconfig_raw = await self.configs.files_match(file_path) if is_file_url(url) else None
            transformed = await self.transformer.transform(_as_text(loaded.source), file_path, tsconfig_raw)
            logger.debug(f"[load] transformed {url} (tsconfig={'yes' if tsconfig_raw else 'no'})")
            return LoadResult(format="module", source=self.source_maps.apply(transformed, url))

        if loaded.format == "module":
            rewritten = await self.transformer.transform_dynamic_import(file_path, _as_text(loaded.source))
            if rewritten is not None:
                logger.debug(f"[load] rewrote dynamic imports in {url}")
                return loaded.model_copy(update={"source": self.source_maps.apply(rewritten, url)})

        return loaded
