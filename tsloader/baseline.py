"""Filesystem baseline resolver and loader.

A minimal stand-in for the host runtime's own resolve/load steps, used by
the CLI and tests. It follows the runtime's strict ESM rules: specifiers
must name an existing file exactly (no extension or index probing),
directories are rejected, and packages resolve through ``exports`` or
``main``.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path
from typing import Any
from urllib.parse import unquote
from urllib.parse import urljoin

from .errors import ErrorCode
from .errors import ImportAttributeMissingError
from .errors import ResolutionError
from .errors import module_not_found
from .formats import extension_of
from .metadata import PACKAGE_JSON
from .metadata import MetadataStore
from .models import LoadContext
from .models import LoadResult
from .models import PackageDescriptor
from .models import ResolveContext
from .models import ResolvedModule
from .paths import DEPENDENCY_STORAGE
from .paths import has_url_scheme
from .paths import is_path_specifier
from .paths import path_to_url
from .paths import strip_query
from .paths import url_to_path

logger = logging.getLogger(__name__)

BUILTIN_MODULES = frozenset(
    {
        "assert", "async_hooks", "buffer", "child_process", "cluster", "console", "constants",
        "crypto", "dgram", "diagnostics_channel", "dns", "domain", "events", "fs", "fs/promises",
        "http", "http2", "https", "inspector", "module", "net", "os", "path", "perf_hooks",
        "process", "punycode", "querystring", "readline", "repl", "stream", "string_decoder",
        "timers", "tls", "trace_events", "tty", "url", "util", "v8", "vm", "wasi",
        "worker_threads", "zlib",
    }
)  # fmt: skip

_DATA_FORMATS = {
    "text/javascript": "module",
    "application/javascript": "module",
    "application/json": "json",
}


def _split_package_specifier(specifier: str) -> tuple[str, str]:
    """Split ``@scope/name/sub`` into (``@scope/name``, ``./sub``)."""
    parts = specifier.split("/")
    count = 2 if specifier.startswith("@") else 1
    if len(parts) < count or not all(parts[:count]):
        raise ResolutionError(ErrorCode.MODULE_NOT_FOUND, f"Invalid package name '{specifier}'", specifier)
    name = "/".join(parts[:count])
    rest = "/".join(parts[count:])
    return name, f"./{rest}" if rest else "."


def _resolve_target(target: Any, captured: str | None, conditions: list[str]) -> str | None:
    """Resolve an exports/imports target against the active conditions."""
    if isinstance(target, str):
        return target.replace("*", captured) if captured is not None else target
    if isinstance(target, list):
        for item in target:
            resolved = _resolve_target(item, captured, conditions)
            if resolved is not None:
                return resolved
        return None
    if isinstance(target, dict):
        for condition, value in target.items():
            if condition == "default" or condition in conditions:
                resolved = _resolve_target(value, captured, conditions)
                if resolved is not None:
                    return resolved
    return None


def match_subpath(mapping: dict[str, Any], subpath: str, conditions: list[str]) -> str | None:
    """Look up a subpath in an exports/imports map.

    Exact keys win; otherwise the ``*`` pattern with the longest prefix.
    """
    if subpath in mapping and "*" not in subpath:
        return _resolve_target(mapping[subpath], None, conditions)

    best_key: str | None = None
    for key in mapping:
        if key.count("*") != 1:
            continue
        prefix, suffix = key.split("*")
        if (
            subpath.startswith(prefix)
            and subpath != prefix
            and subpath.endswith(suffix)
            and len(subpath) >= len(key)
            and (best_key is None or len(prefix) > len(best_key.split("*")[0]))
        ):
            best_key = key

    if best_key is None:
        return None
    prefix, suffix = best_key.split("*")
    captured = subpath[len(prefix) : len(subpath) - len(suffix)]
    return _resolve_target(mapping[best_key], captured, conditions)


def _normalize_exports(exports: Any) -> dict[str, Any]:
    if isinstance(exports, dict) and any(key.startswith(".") for key in exports):
        return exports
    return {".": exports}


class FileSystemResolver:
    """Strict baseline resolver over the local filesystem."""

    def __init__(self, metadata: MetadataStore | None = None):
        self.metadata = metadata or MetadataStore()

    async def __call__(self, specifier: str, context: ResolveContext) -> ResolvedModule:
        return await self.resolve(specifier, context)

    async def resolve(self, specifier: str, context: ResolveContext) -> ResolvedModule:
        parent_url = context.parent_url or path_to_url(Path.cwd()) + "/"

        if specifier.startswith("node:"):
            return ResolvedModule(url=specifier, format="builtin")
        if specifier in BUILTIN_MODULES:
            return ResolvedModule(url=f"node:{specifier}", format="builtin")
        if specifier.startswith("data:"):
            mime = specifier[5:].split(",", 1)[0].split(";", 1)[0]
            return ResolvedModule(url=specifier, format=_DATA_FORMATS.get(mime))

        if is_path_specifier(specifier):
            return await self._resolve_file(urljoin(parent_url, specifier), specifier, parent_url)
        if has_url_scheme(specifier):
            raise ResolutionError(
                ErrorCode.MODULE_NOT_FOUND, f"Unsupported URL scheme in specifier '{specifier}'", specifier
            )
        if specifier.startswith("#"):
            return await self._resolve_package_import(specifier, context, parent_url)
        return await self._resolve_package(specifier, context, parent_url)

    async def _resolve_file(self, url: str, specifier: str, parent_url: str) -> ResolvedModule:
        path = url_to_path(strip_query(url))
        parent = str(url_to_path(parent_url))

        if strip_query(url).endswith("/") or await asyncio.to_thread(path.is_dir):
            raise ResolutionError(
                ErrorCode.UNSUPPORTED_DIR_IMPORT,
                f"Directory import '{path}' is not supported resolving ES modules imported from {parent}",
                specifier,
            )
        if not await asyncio.to_thread(path.is_file):
            raise module_not_found(str(path), parent, specifier)

        return ResolvedModule(url=url, format=await self._format_of(url))

    async def _format_of(self, url: str) -> str | None:
        extension = extension_of(url)
        if extension == ".mjs":
            return "module"
        if extension == ".cjs":
            return "commonjs"
        if extension == ".json":
            return "json"
        if extension == ".js":
            return await self.metadata.get_package_type(strip_query(url))
        return None

    async def _find_package_dir(self, name: str, parent_url: str) -> Path | None:
        directory = url_to_path(parent_url)
        if not parent_url.endswith("/"):
            directory = directory.parent
        while True:
            if directory.name != DEPENDENCY_STORAGE:
                candidate = directory / DEPENDENCY_STORAGE / name
                if await asyncio.to_thread(candidate.is_dir):
                    return candidate
            if directory.parent == directory:
                return None
            directory = directory.parent

    async def _resolve_package(self, specifier: str, context: ResolveContext, parent_url: str) -> ResolvedModule:
        name, subpath = _split_package_specifier(specifier)
        parent = str(url_to_path(parent_url))

        package_dir = await self._find_package_dir(name, parent_url)
        if package_dir is None:
            raise ResolutionError(
                ErrorCode.MODULE_NOT_FOUND, f"Cannot find package '{name}' imported from {parent}", specifier
            )

        descriptor = await self.metadata.read_package_json(package_dir / PACKAGE_JSON)
        raw = descriptor.raw if descriptor else {}

        if "exports" in raw:
            target = match_subpath(_normalize_exports(raw["exports"]), subpath, context.conditions)
            if target is None or not target.startswith("./"):
                raise ResolutionError(
                    ErrorCode.PACKAGE_PATH_NOT_EXPORTED,
                    f"Package subpath '{subpath}' is not defined by \"exports\" in "
                    f"{package_dir / PACKAGE_JSON} imported from {parent}",
                    specifier,
                )
            return await self._resolve_file(path_to_url(package_dir / target), specifier, parent_url)

        if subpath != ".":
            return await self._resolve_file(path_to_url(package_dir / subpath), specifier, parent_url)
        return await self._resolve_main(package_dir, raw, specifier, parent_url)

    async def _resolve_main(
        self,
        package_dir: Path,
        raw: dict[str, Any],
        specifier: str,
        parent_url: str,
    ) -> ResolvedModule:
        """Legacy ``main`` lookup, which does probe extensions."""
        candidates: list[Path] = []
        if isinstance(main := raw.get("main"), str):
            main_path = package_dir / main
            candidates += [
                main_path,
                main_path.with_name(main_path.name + ".js"),
                main_path.with_name(main_path.name + ".json"),
                main_path / "index.js",
            ]
        candidates.append(package_dir / "index.js")

        for candidate in candidates:
            if await asyncio.to_thread(candidate.is_file):
                return await self._resolve_file(path_to_url(candidate), specifier, parent_url)
        raise module_not_found(str(package_dir), str(url_to_path(parent_url)), specifier)

    async def _resolve_package_import(
        self,
        specifier: str,
        context: ResolveContext,
        parent_url: str,
    ) -> ResolvedModule:
        """Resolve ``#internal`` specifiers through package.json ``imports``."""
        descriptor: PackageDescriptor | None = await self.metadata.find_package_json(parent_url)
        imports = descriptor.raw.get("imports") if descriptor else None
        target = match_subpath(imports, specifier, context.conditions) if isinstance(imports, dict) else None

        if descriptor is None or target is None:
            where = f" in package {descriptor.path}" if descriptor else ""
            raise ResolutionError(
                ErrorCode.PACKAGE_IMPORT_NOT_DEFINED,
                f'Package import specifier "{specifier}" is not defined{where} '
                f"imported from {url_to_path(parent_url)}",
                specifier,
            )

        if target.startswith("./"):
            package_dir = Path(descriptor.path).parent
            return await self._resolve_file(path_to_url(package_dir / target), specifier, parent_url)
        return await self.resolve(target, context)


class FileSystemLoader:
    """Baseline loader: reads source bytes for file and data URLs."""

    async def __call__(self, url: str, context: LoadContext) -> LoadResult:
        return await self.load(url, context)

    async def load(self, url: str, context: LoadContext) -> LoadResult:
        if url.startswith("node:"):
            return LoadResult(format="builtin", source=None)

        if url.startswith("data:"):
            header, _, payload = url[5:].partition(",")
            mime = header.split(";", 1)[0]
            source = base64.b64decode(payload) if header.endswith(";base64") else unquote(payload).encode()
            return LoadResult(format=context.format or _DATA_FORMATS.get(mime), source=source)

        fmt = context.format
        if fmt is None:
            fmt = {".mjs": "module", ".cjs": "commonjs", ".json": "json"}.get(extension_of(url))

        if fmt == "json" and context.import_attributes.get("type") != "json":
            raise ImportAttributeMissingError(url)

        path = url_to_path(strip_query(url))
        source = await asyncio.to_thread(path.read_bytes)
        logger.debug(f"[load] read {len(source)} bytes from {path}")
        return LoadResult(format=fmt, source=source)
