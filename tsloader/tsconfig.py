"""Project configuration (tsconfig.json) discovery, parsing and caching.

ConfigStore caches at two levels:
1. requesting file path -> config path (or None when no config governs it)
2. config path -> ProjectConfig (parsed document + matchers)

so every file governed by the same tsconfig shares one parsed document and
one pair of matchers. An override path, when configured, is parsed once
and used for every file.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

from .errors import CacheInconsistencyError
from .errors import MalformedMetadataError
from .matchers import FilesMatcher
from .matchers import PathsMatcher
from .matchers import create_files_matcher
from .matchers import create_paths_matcher
from .paths import DEPENDENCY_STORAGE
from .paths import url_to_path

logger = logging.getLogger(__name__)

TSCONFIG_JSON = "tsconfig.json"

# compilerOptions holding paths relative to the declaring config
_RELATIVE_COMPILER_OPTIONS = ("baseUrl", "outDir", "rootDir")


@dataclass
class ProjectConfig:
    """A resolved tsconfig and the matchers derived from it."""

    path: Path
    config: dict[str, Any]
    files_matcher: FilesMatcher = field(repr=False)
    paths_matcher: PathsMatcher | None = field(repr=False, default=None)

    @classmethod
    def from_document(cls, path: Path, config: dict[str, Any]) -> ProjectConfig:
        return cls(
            path=path,
            config=config,
            files_matcher=create_files_matcher(path, config),
            paths_matcher=create_paths_matcher(path, config),
        )


def strip_jsonc(text: str) -> str:
    """Remove comments and trailing commas so JSONC parses as JSON.

    String literals are left untouched.
    """
    out: list[str] = []
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if char == '"':
            start = i
            i += 1
            while i < length and text[i] != '"':
                i += 2 if text[i] == "\\" else 1
            i += 1
            out.append(text[start:i])
            continue
        if text.startswith("//", i):
            end = text.find("\n", i)
            i = length if end == -1 else end
            continue
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = length if end == -1 else end + 2
            continue
        if char == ",":
            j = i + 1
            while j < length and text[j] in " \t\r\n":
                j += 1
            # Comments between a trailing comma and the closing bracket
            while text.startswith(("//", "/*"), j):
                if text.startswith("//", j):
                    end = text.find("\n", j)
                    j = length if end == -1 else end
                else:
                    end = text.find("*/", j + 2)
                    j = length if end == -1 else end + 2
                while j < length and text[j] in " \t\r\n":
                    j += 1
            if j < length and text[j] in "}]":
                i += 1
                continue
        out.append(char)
        i += 1
    return "".join(out)


def read_jsonc(path: Path) -> dict[str, Any]:
    """Read a JSONC file into a dict.

    Raises:
        MalformedMetadataError: The file is unreadable or not a JSON object
    """
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise MalformedMetadataError(str(path), e.strerror) from e
    except UnicodeDecodeError as e:
        raise MalformedMetadataError(str(path), "invalid UTF-8") from e

    try:
        document = json.loads(strip_jsonc(text))
    except json.JSONDecodeError as e:
        raise MalformedMetadataError(str(path), e.msg) from e

    if not isinstance(document, dict):
        raise MalformedMetadataError(str(path), "expected a JSON object")
    return document


def _rebase(value: str, from_dir: Path, to_dir: Path) -> str:
    """Re-express a path relative to ``from_dir`` as relative to ``to_dir``."""
    if os.path.isabs(value):
        return value
    return Path(os.path.relpath(from_dir / value, to_dir)).as_posix()


def _rebase_config(config: dict[str, Any], from_dir: Path, to_dir: Path) -> dict[str, Any]:
    """Rebase the path-valued settings of an extended config onto the extending one."""
    if from_dir == to_dir:
        return config

    rebased = dict(config)
    compiler_options = dict(config.get("compilerOptions") or {})
    for option in _RELATIVE_COMPILER_OPTIONS:
        if isinstance(compiler_options.get(option), str):
            compiler_options[option] = _rebase(compiler_options[option], from_dir, to_dir)

    # paths without a baseUrl are relative to the declaring config
    paths = compiler_options.get("paths")
    if isinstance(paths, dict) and "baseUrl" not in compiler_options:
        compiler_options["paths"] = {
            pattern: [_rebase(s, from_dir, to_dir) if isinstance(s, str) else s for s in substitutions]
            if isinstance(substitutions, list)
            else substitutions
            for pattern, substitutions in paths.items()
        }
    if compiler_options:
        rebased["compilerOptions"] = compiler_options

    for key in ("files", "include", "exclude"):
        if isinstance(config.get(key), list):
            rebased[key] = [_rebase(p, from_dir, to_dir) if isinstance(p, str) else p for p in config[key]]
    return rebased


def _resolve_extends_path(value: str, config_dir: Path) -> Path | None:
    if not (value.startswith(".") or os.path.isabs(value)):
        logger.warning(f"[tsconfig] package 'extends' is not supported, ignoring: {value}")
        return None
    candidate = (config_dir / value).resolve()
    if candidate.suffix != ".json" and not candidate.is_file():
        candidate = candidate.with_name(candidate.name + ".json")
    return candidate


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = {**base, **override}
    compiler_options = {**(base.get("compilerOptions") or {}), **(override.get("compilerOptions") or {})}
    if compiler_options:
        merged["compilerOptions"] = compiler_options
    return merged


def parse_tsconfig(path: str | Path, _seen: frozenset[Path] = frozenset()) -> dict[str, Any]:
    """Parse a tsconfig.json, following relative ``extends`` chains.

    ``compilerOptions`` are merged shallowly (the extending config wins);
    ``files``/``include``/``exclude`` are inherited when not redeclared.

    Raises:
        MalformedMetadataError: Any file in the chain is malformed, missing
            or part of an ``extends`` cycle
    """
    config_path = Path(path).resolve()
    if config_path in _seen:
        raise MalformedMetadataError(str(config_path), "circular 'extends'")

    config = read_jsonc(config_path)
    extends = config.pop("extends", None)
    if extends is None:
        return config

    config_dir = config_path.parent
    base: dict[str, Any] = {}
    for value in [extends] if isinstance(extends, str) else list(extends):
        if not isinstance(value, str):
            raise MalformedMetadataError(str(config_path), "'extends' must be a string or array of strings")
        parent_path = _resolve_extends_path(value, config_dir)
        if parent_path is None:
            continue
        if not parent_path.is_file():
            raise MalformedMetadataError(str(config_path), f"extended config not found: {value}")
        parent = parse_tsconfig(parent_path, _seen | {config_path})
        base = _merge(base, _rebase_config(parent, parent_path.parent, config_dir))

    return _merge(base, config)


def find_tsconfig(location: str | Path, file_name: str = TSCONFIG_JSON) -> Path | None:
    """Find the nearest config file above ``location``, skipping node_modules."""
    directory = url_to_path(location)
    if not (isinstance(location, str) and location.endswith("/")):
        directory = directory.parent

    while True:
        if directory.name != DEPENDENCY_STORAGE:
            candidate = directory / file_name
            if candidate.is_file():
                return candidate
        if directory.parent == directory:
            return None
        directory = directory.parent


class ConfigStore:
    """Process-lifetime cache of project configurations."""

    def __init__(self, override_path: str | Path | None = None, file_name: str = TSCONFIG_JSON):
        """Initialize the store.

        Args:
            override_path: Explicit tsconfig used for every file (parsed now)
            file_name: Config file name for ancestor discovery
        """
        self.file_name = file_name
        self._config_paths: dict[Path, Path | None] = {}
        self._configs: dict[Path, ProjectConfig] = {}
        self._override: ProjectConfig | None = None

        if override_path is not None:
            path = Path(override_path).resolve()
            self._override = ProjectConfig.from_document(path, parse_tsconfig(path))
            self._configs[path] = self._override
            logger.debug(f"[tsconfig] using override {path}")

    @property
    def override(self) -> ProjectConfig | None:
        return self._override

    async def load(self, reference: str | Path | None) -> ProjectConfig | None:
        """Return the config governing ``reference`` (URL or path).

        Without a reference (entry points) discovery starts from the
        working directory.

        Raises:
            MalformedMetadataError: The discovered config does not parse
            CacheInconsistencyError: A cached config path has no parsed document
        """
        if self._override is not None:
            return self._override

        file_path = url_to_path(reference) if reference else Path.cwd() / "index.js"
        if file_path in self._config_paths:
            config_path = self._config_paths[file_path]
            if config_path is None:
                return None
            cached = self._configs.get(config_path)
            if cached is None:
                raise CacheInconsistencyError(f"cachedTsConfig: config path not found in cache: {config_path}")
            return cached

        config_path = await asyncio.to_thread(find_tsconfig, file_path, self.file_name)
        if config_path is None:
            self._config_paths[file_path] = None
            return None

        project_config = self._configs.get(config_path)
        if project_config is None:
            document = await asyncio.to_thread(parse_tsconfig, config_path)
            project_config = ProjectConfig.from_document(config_path, document)
            self._configs[config_path] = project_config
            logger.debug(f"[tsconfig] loaded {config_path}")

        self._config_paths[file_path] = config_path
        return project_config

    async def match_aliases(self, specifier: str, parent_url: str | None) -> list[str]:
        """Candidate paths for an aliased specifier, in declaration order."""
        project_config = await self.load(parent_url)
        if project_config is None or project_config.paths_matcher is None:
            return []
        return project_config.paths_matcher(specifier)

    async def files_match(self, file_path: str | Path) -> dict[str, Any] | None:
        """Raw config document governing ``file_path``, if any."""
        project_config = await self.load(file_path)
        if project_config is None:
            return None
        return project_config.files_matcher(url_to_path(file_path))
