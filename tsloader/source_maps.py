"""Source-map registry.

Transformed sources get their map registered by module URL and appended
as an inline ``sourceMappingURL`` comment, so stack traces can be mapped
back to the original TypeScript either by the runtime or via ``get()``.
"""

import base64
import json
import logging
from typing import Any

from .models import TransformResult

logger = logging.getLogger(__name__)

INLINE_SOURCE_MAP_PREFIX = "\n//# sourceMappingURL=data:application/json;base64,"


def encode_inline_source_map(source_map: dict[str, Any]) -> str:
    payload = base64.b64encode(json.dumps(source_map).encode("utf-8")).decode("ascii")
    return INLINE_SOURCE_MAP_PREFIX + payload


def identity_source_map(path: str, code: str) -> dict[str, Any]:
    """Line-to-line map for rewrites that never add or remove lines."""
    line_count = code.count("\n") + 1
    mappings = ";".join(["AAAA"] + ["AACA"] * (line_count - 1))
    return {"version": 3, "sources": [path], "names": [], "mappings": mappings}


class SourceMapRegistry:
    """Keeps the source map of every transformed module URL."""

    def __init__(self) -> None:
        self._maps: dict[str, dict[str, Any]] = {}

    def apply(self, result: TransformResult, url: str) -> str:
        """Register ``result.map`` for ``url`` and return the annotated code."""
        if not result.map:
            return result.code
        self._maps[url] = result.map
        return result.code + encode_inline_source_map(result.map)

    def get(self, url: str) -> dict[str, Any] | None:
        return self._maps.get(url)

    def __len__(self) -> int:
        return len(self._maps)
