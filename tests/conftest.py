"""Pytest configuration for tsloader tests."""

import json
from pathlib import Path

import pytest
from tsloader.baseline import FileSystemLoader
from tsloader.baseline import FileSystemResolver
from tsloader.metadata import MetadataStore
from tsloader.models import ResolveContext
from tsloader.models import TransformResult
from tsloader.paths import path_to_url
from tsloader.resolver import Resolver
from tsloader.tsconfig import ConfigStore


class FakeTransformer:
    """Records transform calls and returns a predictable payload."""

    def __init__(self):
        self.calls: list[tuple[str, str, dict | None]] = []
        self.dynamic_calls: list[tuple[str, str]] = []

    async def transform(self, code, path, tsconfig_raw=None):
        self.calls.append((code, path, tsconfig_raw))
        source_map = {"version": 3, "sources": [path], "names": [], "mappings": "AAAA"}
        if path.endswith(".json"):
            return TransformResult(code=f"export default {code.strip()};", map=source_map)
        return TransformResult(code=f"/* transformed */\n{code}", map=source_map)

    async def transform_dynamic_import(self, path, code):
        self.dynamic_calls.append((path, code))
        if "import(" not in code:
            return None
        return TransformResult(code=code.replace("import(", "__import("), map=None)


@pytest.fixture
def write(tmp_path):
    """Write a file under tmp_path, creating parents; dicts are dumped as JSON."""

    def _write(relative: str, content: str | dict = "") -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, dict):
            content = json.dumps(content)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def metadata():
    return MetadataStore()


@pytest.fixture
def configs():
    return ConfigStore()


@pytest.fixture
def resolver(metadata, configs):
    return Resolver(metadata, configs)


@pytest.fixture
def baseline(metadata):
    return FileSystemResolver(metadata)


@pytest.fixture
def baseline_load():
    return FileSystemLoader()


@pytest.fixture
def transformer():
    return FakeTransformer()


@pytest.fixture
def context_from(tmp_path):
    """Build a ResolveContext whose parent is a file under tmp_path."""

    def _context(relative: str = "index.js") -> ResolveContext:
        return ResolveContext(parent_url=path_to_url(tmp_path / relative))

    return _context
