"""Module format inference from file extensions and package.json ``type``."""

import re

from .metadata import MetadataStore
from .paths import strip_query

# Extensions of sources that are transformed before execution
GOVERNED_SOURCE_PATTERN = re.compile(r"\.([cm]?ts|[tj]sx)$")

_EXTENSION_FORMATS = {
    ".json": "json",
    ".mjs": "module",
    ".mts": "module",
    ".cjs": "commonjs",
    ".cts": "commonjs",
}


def extension_of(url: str) -> str:
    """Extension of the last path segment of a URL, including the dot."""
    name = strip_query(url).rsplit("/", 1)[-1]
    index = name.rfind(".")
    if index <= 0:
        return ""
    return name[index:]


def format_from_extension(url: str) -> str | None:
    return _EXTENSION_FORMATS.get(extension_of(url))


def is_governed_source(url: str | None) -> bool:
    """Check whether a URL names a TypeScript/JSX source file."""
    if not url:
        return False
    return GOVERNED_SOURCE_PATTERN.search(strip_query(url)) is not None


class FormatResolver:
    """Maps resolved file URLs to module formats.

    Extension rules win; TypeScript/JSX sources defer to the nearest
    package.json ``type``; anything else is left to the baseline resolver.
    """

    def __init__(self, metadata: MetadataStore):
        self.metadata = metadata

    async def resolve_format(self, url: str) -> str | None:
        if fmt := format_from_extension(url):
            return fmt
        if is_governed_source(url):
            return await self.metadata.get_package_type(strip_query(url))
        return None
