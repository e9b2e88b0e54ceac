"""Data models passed between the runtime hooks and their collaborators."""

from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import Field

ModuleType = Literal["module", "commonjs"]


class ResolveContext(BaseModel):
    """Per-call resolution context.

    Attributes:
        parent_url: URL of the importing module (None for entry points)
        import_attributes: Import attributes requested by the caller
        conditions: Export conditions, in priority order
    """

    parent_url: str | None = None
    import_attributes: dict[str, str] = Field(default_factory=dict)
    conditions: list[str] = Field(default_factory=lambda: ["node", "import"])


class ResolvedModule(BaseModel):
    """Result of a successful resolution."""

    url: str
    format: str | None = None
    short_circuit: bool = False


class LoadContext(BaseModel):
    """Per-call load context."""

    format: str | None = None
    import_attributes: dict[str, str] = Field(default_factory=dict)
    conditions: list[str] = Field(default_factory=lambda: ["node", "import"])


class LoadResult(BaseModel):
    """Source and format produced by a load step."""

    format: str | None = None
    source: str | bytes | None = None
    short_circuit: bool = False


class PackageDescriptor(BaseModel):
    """Parsed package.json; only ``type`` drives format inference."""

    path: str
    type: ModuleType = "commonjs"
    raw: dict[str, Any] = Field(default_factory=dict)


class DependencyMessage(BaseModel):
    """Notification sent to a supervising process for every loaded URL."""

    type: Literal["dependency"] = "dependency"
    path: str = Field(description="Loaded module URL")


@dataclass
class TransformResult:
    """Transformed code and its source map (None when no map was produced)."""

    code: str
    map: dict[str, Any] | None = None


DefaultResolve = Callable[[str, ResolveContext], Awaitable[ResolvedModule]]
DefaultLoad = Callable[[str, LoadContext], Awaitable[LoadResult]]
