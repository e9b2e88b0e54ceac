"""Resolution orchestrator.

Extends the host runtime's baseline resolver. Resolution order for a
specifier (first success wins):

1. Explicit directory (trailing slash) -> directory-index probing
2. tsconfig ``paths`` alias candidates (bare specifiers only)
3. ``.js`` -> ``.ts`` rewrite when imported from a TypeScript/JSX file
4. Baseline resolver, retried with directory or extension probing when
   it reports an unsupported directory import or a missing module

Stages 2 and 3 are skipped on recursive calls made by the probers, which
bounds recursion to the number of static fallback stages.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable
from collections.abc import Callable

from .errors import ErrorCode
from .errors import ResolutionError
from .formats import FormatResolver
from .formats import extension_of
from .formats import is_governed_source
from .metadata import MetadataStore
from .models import DefaultResolve
from .models import ResolveContext
from .models import ResolvedModule
from .paths import FILE_PROTOCOL
from .paths import has_url_scheme
from .paths import is_file_url
from .paths import is_in_dependency_storage
from .paths import is_path_specifier
from .paths import path_to_url
from .probing import Prober
from .tsconfig import ConfigStore

logger = logging.getLogger(__name__)

NODE_PREFIX = "node:"

# Source extension a compiled-output import may stand for
SOURCE_REWRITES = {
    ".js": ".ts",
    ".jsx": ".tsx",
    ".cjs": ".cts",
    ".mjs": ".mts",
}

# Start of a query or hash suffix
_SUFFIX = re.compile(r"[?#]")

Stage = Callable[[str, ResolveContext, DefaultResolve], Awaitable[ResolvedModule | None]]


def parse_version(version: str) -> tuple[int, int, int]:
    """Parse ``v20.1.0`` / ``20.1`` into a comparable tuple."""
    parts = version.strip().lstrip("v").split(".")
    numbers = [int(part) for part in parts[:3] if part.isdigit()]
    while len(numbers) < 3:
        numbers.append(0)
    return (numbers[0], numbers[1], numbers[2])


def supports_node_prefix(version: tuple[int, int, int]) -> bool:
    """Whether the host runtime understands ``node:`` builtin specifiers."""
    # Shipped in 14.13.1 and backported to 12.20.0; no 13.x release has it
    if version >= (14, 13, 1):
        return True
    return (12, 20, 0) <= version < (13, 0, 0)


def resolve_ts_path(specifier: str) -> str | None:
    """Rewrite a compiled-output specifier to its TypeScript source.

    ``./util.js`` -> ``./util.ts``; query and hash suffixes are kept. Returns None
    when the extension has no source counterpart.
    """
    if has_url_scheme(specifier) and not specifier.startswith(FILE_PROTOCOL):
        return None

    match = _SUFFIX.search(specifier)
    split = match.start() if match else len(specifier)
    path, suffix = specifier[:split], specifier[split:]
    extension = extension_of(path)
    source_extension = SOURCE_REWRITES.get(extension)
    if source_extension is None:
        return None
    return path[: -len(extension)] + source_extension + suffix


class Resolver:
    """Resolve hook combining aliasing, extension rewriting and probing.

    Collaborators are injected: the metadata and config stores own the
    process-lifetime caches; the baseline resolver is passed per call.
    """

    def __init__(
        self,
        metadata: MetadataStore,
        configs: ConfigStore,
        node_version: tuple[int, int, int] = (20, 0, 0),
    ) -> None:
        self.metadata = metadata
        self.configs = configs
        self.formats = FormatResolver(metadata)
        self.prober = Prober(self.resolve)
        self.supports_node_prefix = supports_node_prefix(node_version)
        self._stages: tuple[Stage, ...] = (self._resolve_alias, self._resolve_source_rewrite)

    async def __call__(
        self,
        specifier: str,
        context: ResolveContext,
        default_resolve: DefaultResolve,
    ) -> ResolvedModule:
        return await self.resolve(specifier, context, default_resolve)

    async def resolve(
        self,
        specifier: str,
        context: ResolveContext,
        default_resolve: DefaultResolve,
        recursive: bool = False,
    ) -> ResolvedModule:
        """Resolve a specifier to a module URL and format.

        Raises:
            ResolutionError: Nothing matched after every fallback
            MalformedMetadataError: A package.json or tsconfig.json is malformed
        """
        if not self.supports_node_prefix and specifier.startswith(NODE_PREFIX):
            specifier = specifier[len(NODE_PREFIX) :]

        if specifier.endswith("/"):
            return await self.prober.try_directory(specifier, context, default_resolve)

        if not recursive:
            for stage in self._stages:
                resolved = await stage(specifier, context, default_resolve)
                if resolved is not None:
                    return resolved

        return await self._resolve_baseline(specifier, context, default_resolve, recursive)

    async def _resolve_alias(
        self,
        specifier: str,
        context: ResolveContext,
        default_resolve: DefaultResolve,
    ) -> ResolvedModule | None:
        """Try each tsconfig ``paths`` candidate for a bare specifier."""
        if is_path_specifier(specifier) or has_url_scheme(specifier):
            return None
        if is_in_dependency_storage(context.parent_url):
            return None

        candidates = await self.configs.match_aliases(specifier, context.parent_url)
        for candidate in candidates:
            # Candidates are file URLs, so this stage never re-applies to them
            try:
                return await self.resolve(path_to_url(candidate), context, default_resolve)
            except ResolutionError as error:
                logger.debug(f"[resolve] alias candidate {candidate} for {specifier} failed: {error.code.value}")
        return None

    async def _resolve_source_rewrite(
        self,
        specifier: str,
        context: ResolveContext,
        default_resolve: DefaultResolve,
    ) -> ResolvedModule | None:
        """Prefer ``./x.ts`` when a TypeScript file imports ``./x.js``."""
        if not is_governed_source(context.parent_url):
            return None

        ts_specifier = resolve_ts_path(specifier)
        if ts_specifier is None:
            return None

        try:
            return await self.resolve(ts_specifier, context, default_resolve, recursive=True)
        except ResolutionError as error:
            match error.code:
                case ErrorCode.MODULE_NOT_FOUND | ErrorCode.PACKAGE_PATH_NOT_EXPORTED:
                    logger.debug(f"[resolve] no source for {specifier}, tried {ts_specifier}")
                    return None
                case ErrorCode.UNSUPPORTED_DIR_IMPORT | ErrorCode.PACKAGE_IMPORT_NOT_DEFINED:
                    raise

    async def _resolve_baseline(
        self,
        specifier: str,
        context: ResolveContext,
        default_resolve: DefaultResolve,
        recursive: bool,
    ) -> ResolvedModule:
        try:
            resolved = await default_resolve(specifier, context)
        except ResolutionError as error:
            if recursive:
                raise
            recovered = await self._recover(specifier, context, default_resolve, error)
            if recovered is None:
                raise
            return recovered

        if resolved.format is None and is_file_url(resolved.url):
            resolved = resolved.model_copy(update={"format": await self.formats.resolve_format(resolved.url)})

        logger.debug(f"[resolve] {specifier} -> {resolved.url} (format={resolved.format})")
        return resolved

    async def _recover(
        self,
        specifier: str,
        context: ResolveContext,
        default_resolve: DefaultResolve,
        error: ResolutionError,
    ) -> ResolvedModule | None:
        """Retry a failed baseline resolution with probing.

        Returns None when the original error should propagate.
        """
        match error.code:
            case ErrorCode.UNSUPPORTED_DIR_IMPORT:
                try:
                    return await self.prober.try_directory(specifier, context, default_resolve)
                except ResolutionError as directory_error:
                    if directory_error.code is not ErrorCode.PACKAGE_IMPORT_NOT_DEFINED:
                        raise
                    return None
            case ErrorCode.MODULE_NOT_FOUND:
                try:
                    return await self.prober.try_extensions(specifier, context, default_resolve)
                except ResolutionError:
                    return None
            case ErrorCode.PACKAGE_PATH_NOT_EXPORTED | ErrorCode.PACKAGE_IMPORT_NOT_DEFINED:
                return None
