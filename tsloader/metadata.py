"""Package metadata store.

Caches parsed package.json documents by absolute path, including negative
results, and answers "what module type governs this file" by walking up
to the nearest package.json.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from .errors import MalformedMetadataError
from .models import ModuleType
from .models import PackageDescriptor
from .paths import DEPENDENCY_STORAGE
from .paths import url_to_path

logger = logging.getLogger(__name__)

PACKAGE_JSON = "package.json"


@dataclass
class CacheStats:
    """Hit/miss counters for cache instrumentation."""

    hits: int = 0
    misses: int = 0


class MetadataStore:
    """Process-lifetime cache of package.json lookups.

    Each absolute path maps to at most one cached result: a
    PackageDescriptor, or None when the file does not exist. Entries are
    never invalidated.
    """

    def __init__(self) -> None:
        self._cache: dict[Path, PackageDescriptor | None] = {}
        self.stats = CacheStats()

    async def read_package_json(self, path: Path) -> PackageDescriptor | None:
        """Read and cache a single package.json.

        Raises:
            MalformedMetadataError: The file exists but is not a JSON object
        """
        if path in self._cache:
            self.stats.hits += 1
            return self._cache[path]

        self.stats.misses += 1
        if not await asyncio.to_thread(path.is_file):
            self._cache[path] = None
            return None

        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except UnicodeDecodeError as e:
            raise MalformedMetadataError(str(path), "invalid UTF-8") from e
        descriptor = parse_package_json(path, text)
        self._cache[path] = descriptor
        logger.debug(f"[package] loaded {path} (type={descriptor.type})")
        return descriptor

    async def find_package_json(self, location: str | Path) -> PackageDescriptor | None:
        """Find the nearest package.json at or above ``location``.

        The walk stops at a node_modules boundary or at the filesystem root.
        """
        candidate = _start_directory(location) / PACKAGE_JSON
        while True:
            if candidate.parent.name == DEPENDENCY_STORAGE:
                return None

            descriptor = await self.read_package_json(candidate)
            if descriptor is not None:
                return descriptor

            parent = candidate.parent.parent / PACKAGE_JSON
            if parent == candidate:
                return None
            candidate = parent

    async def get_package_type(self, location: str | Path) -> ModuleType:
        """Return the ``type`` of the nearest package.json (default commonjs)."""
        descriptor = await self.find_package_json(location)
        if descriptor is None:
            return "commonjs"
        return descriptor.type


def parse_package_json(path: Path, text: str) -> PackageDescriptor:
    """Parse package.json text into a descriptor.

    Unknown ``type`` values fall back to commonjs, like the host runtime.
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedMetadataError(str(path), e.msg) from e

    if not isinstance(document, dict):
        raise MalformedMetadataError(str(path), "expected a JSON object")

    module_type = document.get("type")
    if module_type not in ("module", "commonjs"):
        module_type = "commonjs"

    try:
        return PackageDescriptor(path=str(path), type=module_type, raw=document)
    except ValidationError as e:
        raise MalformedMetadataError(str(path), str(e)) from e


def _start_directory(location: str | Path) -> Path:
    """Directory a lookup starts from: the location itself if it names a directory."""
    path = url_to_path(location)
    if isinstance(location, str) and location.endswith("/"):
        return path
    return path.parent
