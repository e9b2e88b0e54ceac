"""Source transformation collaborators.

The loader only depends on the Transformer protocol. EsbuildTransformer
shells out to the ``esbuild`` binary; dynamic-import rewriting is done
in-process since it only appends an interop ``.then()`` to each
``import(...)`` expression.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import re
from pathlib import Path
from typing import Any
from typing import Protocol
from typing import runtime_checkable

from .errors import TransformError
from .models import TransformResult
from .source_maps import identity_source_map

logger = logging.getLogger(__name__)

ESBUILD_LOADERS = {
    ".ts": "ts",
    ".mts": "ts",
    ".cts": "ts",
    ".tsx": "tsx",
    ".jsx": "jsx",
    ".json": "json",
    ".js": "js",
    ".mjs": "js",
    ".cjs": "js",
}

_INLINE_SOURCE_MAP = re.compile(r"\n?//# sourceMappingURL=data:application/json;base64,([A-Za-z0-9+/=]+)\s*$")

# Unwraps `export default` re-exports of transpiled CommonJS interop modules
CHECK_ES_MODULE = (
    ".then((mod)=>{const exports=Object.keys(mod);"
    "if(exports.length===1&&exports[0]==='default'&&mod.default&&mod.default.__esModule)"
    "{return mod.default}return mod})"
)


@runtime_checkable
class Transformer(Protocol):
    """Interface of the external source transformer."""

    async def transform(self, code: str, path: str, tsconfig_raw: dict[str, Any] | None = None) -> TransformResult:
        """Transform a TypeScript/JSX/JSON source into an ES module."""
        ...

    async def transform_dynamic_import(self, path: str, code: str) -> TransformResult | None:
        """Rewrite dynamic imports only; None when nothing was rewritten."""
        ...


def split_inline_source_map(output: str) -> TransformResult:
    """Separate a trailing inline source map from generated code."""
    match = _INLINE_SOURCE_MAP.search(output)
    if match is None:
        return TransformResult(code=output)
    source_map = json.loads(base64.b64decode(match.group(1)))
    return TransformResult(code=output[: match.start()], map=source_map)


def _skip_string(code: str, index: int) -> int:
    """Index just past the string/template literal starting at ``index``."""
    quote = code[index]
    index += 1
    while index < len(code) and code[index] != quote:
        index += 2 if code[index] == "\\" else 1
    return index + 1


def _skip_comment(code: str, index: int) -> int:
    if code.startswith("//", index):
        end = code.find("\n", index)
        return len(code) if end == -1 else end
    end = code.find("*/", index + 2)
    return len(code) if end == -1 else end + 2


# A `/` after one of these (or at the start) opens a regex literal, not a division
_REGEX_PRECEDERS = "(,=:[!&|?{};+-*%>~^"


def _starts_regex(code: str, index: int) -> bool:
    before = index - 1
    while before >= 0 and code[before] in " \t\r\n":
        before -= 1
    return before < 0 or code[before] in _REGEX_PRECEDERS


def _skip_regex(code: str, index: int) -> int:
    """Index just past the regex literal starting at ``index`` (flags are plain identifiers)."""
    index += 1
    in_class = False
    while index < len(code) and code[index] != "\n":
        char = code[index]
        if char == "\\":
            index += 2
            continue
        if char == "[":
            in_class = True
        elif char == "]":
            in_class = False
        elif char == "/" and not in_class:
            return index + 1
        index += 1
    return index


def _skip_literal(code: str, index: int) -> int | None:
    """Index past the string, comment or regex literal at ``index``; None when there is none.

    Regex detection looks only at the preceding punctuation, so a regex
    right after a keyword such as ``return`` is scanned as code.
    """
    char = code[index]
    if char in "'\"`":
        return _skip_string(code, index)
    if code.startswith(("//", "/*"), index):
        return _skip_comment(code, index)
    if char == "/" and _starts_regex(code, index):
        return _skip_regex(code, index)
    return None


def _find_closing_paren(code: str, index: int) -> int:
    """Index of the ``)`` matching the ``(`` at ``index``, or -1."""
    depth = 0
    while index < len(code):
        skipped = _skip_literal(code, index)
        if skipped is not None:
            index = skipped
            continue
        char = code[index]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return -1


def find_dynamic_imports(code: str) -> list[int]:
    """End offsets (just past ``)``) of every ``import(...)`` expression."""
    ends: list[int] = []
    index = 0
    while index < len(code):
        skipped = _skip_literal(code, index)
        if skipped is not None:
            index = skipped
            continue
        if code.startswith("import", index):
            before = code[index - 1] if index else ""
            after = index + len("import")
            while after < len(code) and code[after] in " \t\r\n":
                after += 1
            if not (before and (before.isalnum() or before in "_$.")) and after < len(code) and code[after] == "(":
                close = _find_closing_paren(code, after)
                if close != -1:
                    ends.append(close + 1)
                    index = after + 1
                    continue
            index += len("import")
            continue
        index += 1
    return ends


def rewrite_dynamic_imports(code: str) -> str | None:
    """Append the ES-module interop check to each dynamic import.

    Returns None when the code has no dynamic imports.
    """
    if "import" not in code:
        return None
    ends = find_dynamic_imports(code)
    if not ends:
        return None

    pieces: list[str] = []
    previous = 0
    for end in ends:
        pieces.append(code[previous:end])
        pieces.append(CHECK_ES_MODULE)
        previous = end
    pieces.append(code[previous:])
    return "".join(pieces)


class EsbuildTransformer:
    """Transformer backed by the esbuild CLI."""

    def __init__(self, binary: str = "esbuild", target: str = "node20"):
        self.binary = binary
        self.target = target

    async def transform(self, code: str, path: str, tsconfig_raw: dict[str, Any] | None = None) -> TransformResult:
        loader = ESBUILD_LOADERS.get(Path(path).suffix, "ts")
        cmd = [
            self.binary,
            f"--loader={loader}",
            "--format=esm",
            "--sourcemap=inline",
            f"--sourcefile={path}",
            f"--target={self.target}",
        ]
        if tsconfig_raw:
            cmd.append(f"--tsconfig-raw={json.dumps(tsconfig_raw)}")

        logger.debug(f"[load] transforming {path} with {self.binary} (loader={loader})")
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise TransformError(path, f"'{self.binary}' not found on PATH") from e

        stdout, stderr = await proc.communicate(code.encode("utf-8"))
        if proc.returncode != 0:
            raise TransformError(path, stderr.decode("utf-8", errors="replace").strip())
        return split_inline_source_map(stdout.decode("utf-8"))

    async def transform_dynamic_import(self, path: str, code: str) -> TransformResult | None:
        rewritten = rewrite_dynamic_imports(code)
        if rewritten is None:
            return None
        return TransformResult(code=rewritten, map=identity_source_map(path, code))
