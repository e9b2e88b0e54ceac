"""Extension and directory-index probing.

The baseline resolver requires fully specified paths. These probers retry
a failed specifier with each known extension, or with an ``index`` file,
by re-entering the resolver in recursive mode.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Awaitable
from collections.abc import Callable

from .errors import ResolutionError
from .models import DefaultResolve
from .models import ResolveContext
from .models import ResolvedModule

logger = logging.getLogger(__name__)

# Probe order: script, data, then governed sources
EXTENSIONS = (".js", ".json", ".ts", ".tsx", ".jsx")

ResolveFn = Callable[[str, ResolveContext, DefaultResolve, bool], Awaitable[ResolvedModule]]


class Prober:
    """Extension and directory probing on top of a resolve function."""

    def __init__(self, resolve: ResolveFn, extensions: tuple[str, ...] = EXTENSIONS):
        self._resolve = resolve
        self.extensions = extensions

    async def try_extensions(
        self,
        specifier: str,
        context: ResolveContext,
        default_resolve: DefaultResolve,
    ) -> ResolvedModule:
        """Resolve ``specifier`` with each extension appended; first success wins.

        Raises:
            ResolutionError: The failure of the first extension tried, with
                that extension removed from the message
        """
        first_error: ResolutionError | None = None
        for extension in self.extensions:
            try:
                return await self._resolve(specifier + extension, context, default_resolve, True)
            except ResolutionError as error:
                if first_error is None:
                    first_error = error.with_message_replaced(f"{extension}'", "'")

        if first_error is None:
            raise ValueError("no extensions configured for probing")
        logger.debug(f"[resolve] no extension matched for {specifier}")
        raise first_error

    async def try_directory(
        self,
        specifier: str,
        context: ResolveContext,
        default_resolve: DefaultResolve,
    ) -> ResolvedModule:
        """Resolve ``specifier`` as a directory containing an index file.

        An explicit directory (trailing slash) only tries its index file.
        Otherwise the index file is tried first, then ``specifier`` itself
        through extension probing.

        Raises:
            ResolutionError: The index lookup failure, with the index suffix
                removed from the message
        """
        is_explicit_directory = specifier.endswith("/")
        append_index = "index" if is_explicit_directory else "/index"

        try:
            return await self.try_extensions(specifier + append_index, context, default_resolve)
        except ResolutionError as error:
            index_error = error

        if not is_explicit_directory:
            try:
                return await self.try_extensions(specifier, context, default_resolve)
            except ResolutionError:
                logger.debug(f"[resolve] {specifier} is neither a directory with an index nor a file")

        raise index_error.with_message_replaced(append_index.replace("/", os.sep) + "'", "'")
