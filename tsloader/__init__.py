"""tsloader - module resolution and load hooks for TypeScript/ES module graphs.

Extends a host runtime's baseline resolver with extension-less and
directory-index probing, tsconfig ``paths`` aliases, ``.js`` -> ``.ts``
rewriting and package.json ``type``-driven format inference, and
transforms governed sources at load time.
"""

from .errors import CacheInconsistencyError
from .errors import ErrorCode
from .errors import ImportAttributeMissingError
from .errors import MalformedMetadataError
from .errors import ResolutionError
from .errors import TransformError
from .hooks import LoaderHooks
from .hooks import create_hooks
from .loader import Loader
from .metadata import MetadataStore
from .models import DependencyMessage
from .models import LoadContext
from .models import LoadResult
from .models import ResolveContext
from .models import ResolvedModule
from .resolver import Resolver
from .settings import LoaderSettings
from .tsconfig import ConfigStore
from .tsconfig import ProjectConfig

__all__ = [
    "CacheInconsistencyError",
    "ConfigStore",
    "DependencyMessage",
    "ErrorCode",
    "ImportAttributeMissingError",
    "LoadContext",
    "LoadResult",
    "Loader",
    "LoaderHooks",
    "LoaderSettings",
    "MalformedMetadataError",
    "MetadataStore",
    "ProjectConfig",
    "ResolutionError",
    "ResolveContext",
    "ResolvedModule",
    "Resolver",
    "TransformError",
    "create_hooks",
]
