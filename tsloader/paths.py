"""URL and path helpers shared by the resolver and loader.

Modules are identified by URLs (``file://``, ``node:``, ``data:``); only
``file://`` URLs map to filesystem paths.
"""

import os
import re
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

FILE_PROTOCOL = "file://"
DEPENDENCY_STORAGE = "node_modules"

_PATH_SPECIFIER = re.compile(r"^\.{0,2}/")


def is_file_url(value: str | None) -> bool:
    return bool(value) and value.startswith(FILE_PROTOCOL)


def is_path_specifier(specifier: str) -> bool:
    """Check whether a specifier is a URL or a relative/absolute path.

    Bare specifiers (package names, aliases) return False.
    """
    return specifier.startswith(FILE_PROTOCOL) or bool(_PATH_SPECIFIER.match(specifier))


def url_to_path(location: str | Path) -> Path:
    """Convert a ``file://`` URL (or a plain path) into an absolute Path."""
    if isinstance(location, Path):
        return location.absolute()
    if location.startswith(FILE_PROTOCOL):
        parsed = urlparse(location)
        return Path(url2pathname(parsed.path))
    return Path(location).absolute()


def path_to_url(path: str | Path) -> str:
    """Convert an absolute path into a ``file://`` URL.

    A trailing separator is kept so directory candidates stay explicit.
    """
    text = str(path)
    url = Path(text).absolute().as_uri()
    if text.endswith(("/", os.sep)) and not url.endswith("/"):
        url += "/"
    return url


def is_in_dependency_storage(url: str | None) -> bool:
    """Best-effort check for URLs inside a node_modules directory."""
    if not url:
        return False
    return f"/{DEPENDENCY_STORAGE}/" in url.replace("\\", "/")


def strip_query(url: str) -> str:
    """Drop ``?query`` and ``#hash`` suffixes from a URL."""
    for marker in ("?", "#"):
        index = url.find(marker)
        if index != -1:
            url = url[:index]
    return url


_URL_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]+:")


def has_url_scheme(specifier: str) -> bool:
    """Check for a URL scheme such as ``node:``, ``data:`` or ``file:``.

    Single-letter schemes are Windows drive letters, not URLs.
    """
    return bool(_URL_SCHEME.match(specifier))
