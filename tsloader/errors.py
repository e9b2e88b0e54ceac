"""Error taxonomy for resolution and loading.

Resolution failures carry an ErrorCode so fallback stages can decide
whether to try the next strategy or propagate:
- ResolutionError: recoverable or fatal depending on its code
- MalformedMetadataError: package.json / tsconfig.json exists but does not parse
- CacheInconsistencyError: a cache invariant was violated (logic bug)
- ImportAttributeMissingError: a JSON module was loaded without type: "json"
- TransformError: the source transformer failed
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Host-runtime error codes raised by resolution."""

    MODULE_NOT_FOUND = "ERR_MODULE_NOT_FOUND"
    PACKAGE_PATH_NOT_EXPORTED = "ERR_PACKAGE_PATH_NOT_EXPORTED"
    UNSUPPORTED_DIR_IMPORT = "ERR_UNSUPPORTED_DIR_IMPORT"
    PACKAGE_IMPORT_NOT_DEFINED = "ERR_PACKAGE_IMPORT_NOT_DEFINED"


class ResolutionError(Exception):
    """A specifier could not be resolved.

    Attributes:
        code: Tagged error kind
        specifier: Specifier that was being resolved when the error was raised
        message: Human-readable message (quotes the offending path)
    """

    def __init__(self, code: ErrorCode, message: str, specifier: str | None = None):
        self.code = code
        self.message = message
        self.specifier = specifier
        super().__init__(message)

    def with_message_replaced(self, old: str, new: str) -> ResolutionError:
        """Return a copy with ``old`` replaced by ``new`` in the message.

        Used to strip probe suffixes (``.js``, ``/index``) so the user sees the
        specifier they wrote rather than an internal retry candidate. The
        traceback of the original error is kept.
        """
        if old not in self.message:
            return self
        error = ResolutionError(self.code, self.message.replace(old, new), self.specifier)
        return error.with_traceback(self.__traceback__)

    def __repr__(self) -> str:
        return f"ResolutionError({self.code.value}, {self.message!r})"


class MalformedMetadataError(Exception):
    """A package descriptor or project config exists but cannot be parsed."""

    def __init__(self, path: str, reason: str | None = None):
        self.path = path
        self.reason = reason
        message = f"Error parsing: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class CacheInconsistencyError(RuntimeError):
    """A cache invariant was violated."""


class ImportAttributeMissingError(Exception):
    """A JSON module was loaded without ``type: "json"`` import attributes."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f'Module "{url}" needs an import attribute of "type: json"')


class TransformError(Exception):
    """The source transformer failed for a file."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Transform failed for {path}: {message}")


def module_not_found(path: str, parent: str | None, specifier: str | None = None) -> ResolutionError:
    """Build the host-style "Cannot find module" error."""
    message = f"Cannot find module '{path}'"
    if parent:
        message += f" imported from {parent}"
    return ResolutionError(ErrorCode.MODULE_NOT_FOUND, message, specifier)
