"""Matchers derived from a tsconfig document.

- create_files_matcher: does a file fall under this config's files/include/exclude?
- create_paths_matcher: translate an aliased specifier into candidate paths
  using compilerOptions.paths and compilerOptions.baseUrl
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

FilesMatcher = Callable[[str | Path], dict[str, Any] | None]
PathsMatcher = Callable[[str], list[str]]

DEFAULT_INCLUDE = ["**/*"]
DEFAULT_EXCLUDE = ["node_modules", "bower_components", "jspm_packages"]

_RELATIVE_SPECIFIER = re.compile(r"^\.{1,2}(/.*)?$")


def _slash(path: str | Path) -> str:
    return str(path).replace(os.sep, "/")


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a tsconfig glob (absolute, forward slashes) to a regex.

    ``**/`` spans any number of directories, ``*`` and ``?`` stay within
    one path segment. A pattern also matches everything below it, so
    directory patterns like ``src`` or ``node_modules`` cover their subtree.
    """
    regex = ""
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            regex += "(?:[^/]*/)*"
            i += 3
        elif pattern.startswith("**", i):
            regex += ".*"
            i += 2
        elif pattern[i] == "*":
            regex += "[^/]*"
            i += 1
        elif pattern[i] == "?":
            regex += "[^/]"
            i += 1
        else:
            regex += re.escape(pattern[i])
            i += 1
    return re.compile(f"^{regex}(?:/.*)?$")


def create_files_matcher(config_path: str | Path, config: dict[str, Any]) -> FilesMatcher:
    """Build the "is this file governed by the config" predicate.

    Returns a callable that yields the raw config document for governed
    files and None otherwise.
    """
    config_dir = Path(config_path).parent
    compiler_options = config.get("compilerOptions") or {}

    files = config.get("files")
    include = config.get("include")
    if include is None:
        include = [] if files else DEFAULT_INCLUDE
    exclude = config.get("exclude")
    if exclude is None:
        exclude = list(DEFAULT_EXCLUDE)
        if out_dir := compiler_options.get("outDir"):
            exclude.append(out_dir)

    def absolute(pattern: str) -> str:
        return _slash(os.path.normpath(config_dir / pattern))

    listed_files = {absolute(file) for file in files or []}
    include_patterns = [glob_to_regex(absolute(pattern)) for pattern in include]
    exclude_patterns = [glob_to_regex(absolute(pattern)) for pattern in exclude]

    def files_matcher(file_path: str | Path) -> dict[str, Any] | None:
        target = _slash(file_path)
        if target in listed_files:
            return config
        if not any(pattern.match(target) for pattern in include_patterns):
            return None
        if any(pattern.match(target) for pattern in exclude_patterns):
            return None
        return config

    return files_matcher


@dataclass
class PathEntry:
    """One compilerOptions.paths rule."""

    pattern: str
    substitutions: list[str]

    @property
    def is_wildcard(self) -> bool:
        return "*" in self.pattern

    @property
    def prefix(self) -> str:
        return self.pattern.split("*", 1)[0]

    @property
    def suffix(self) -> str:
        return self.pattern.split("*", 1)[1] if self.is_wildcard else ""

    def matches(self, specifier: str) -> bool:
        return (
            len(specifier) >= len(self.prefix) + len(self.suffix)
            and specifier.startswith(self.prefix)
            and specifier.endswith(self.suffix)
        )


def parse_paths(paths: dict[str, Any], base_dir: Path) -> list[PathEntry]:
    """Validate compilerOptions.paths and resolve substitutions to absolute paths.

    Entries with more than one ``*`` in the pattern or a substitution are
    skipped with a warning, as are non-list values.
    """
    entries: list[PathEntry] = []
    for pattern, substitutions in paths.items():
        if pattern.count("*") > 1:
            logger.warning(f"[tsconfig] paths pattern '{pattern}' can have at most one '*', skipping")
            continue
        if not isinstance(substitutions, list):
            logger.warning(f"[tsconfig] substitutions for '{pattern}' must be an array, skipping")
            continue

        resolved: list[str] = []
        for substitution in substitutions:
            if not isinstance(substitution, str) or substitution.count("*") > 1:
                logger.warning(f"[tsconfig] invalid substitution {substitution!r} for '{pattern}', skipping")
                continue
            resolved.append(_slash(os.path.normpath(base_dir / substitution)))
        entries.append(PathEntry(pattern=pattern, substitutions=resolved))
    return entries


def create_paths_matcher(config_path: str | Path, config: dict[str, Any]) -> PathsMatcher | None:
    """Build the alias matcher, or None when neither paths nor baseUrl is declared.

    Paths without a baseUrl resolve relative to the config's directory.
    """
    compiler_options = config.get("compilerOptions") or {}
    base_url = compiler_options.get("baseUrl")
    paths = compiler_options.get("paths")
    if not base_url and not paths:
        return None

    config_dir = Path(config_path).parent
    resolved_base = Path(os.path.normpath(config_dir / (base_url or ".")))
    entries = parse_paths(paths, resolved_base) if isinstance(paths, dict) else []

    def paths_matcher(specifier: str) -> list[str]:
        if _RELATIVE_SPECIFIER.match(specifier) or specifier.startswith("/"):
            return []

        wildcard_entries: list[PathEntry] = []
        for entry in entries:
            if entry.pattern == specifier:
                return list(entry.substitutions)
            if entry.is_wildcard:
                wildcard_entries.append(entry)

        matched: PathEntry | None = None
        for entry in wildcard_entries:
            if entry.matches(specifier) and (matched is None or len(entry.prefix) > len(matched.prefix)):
                matched = entry

        if matched is None:
            if base_url:
                return [_slash(resolved_base / specifier)]
            return []

        captured = specifier[len(matched.prefix) : len(specifier) - len(matched.suffix)]
        return [substitution.replace("*", captured) for substitution in matched.substitutions]

    return paths_matcher
