"""Environment-driven loader settings.

Environment variables:
- TSLOADER_TSCONFIG_PATH: explicit tsconfig used for every file
- TSLOADER_NODE_VERSION: host runtime version (decides ``node:`` prefix support)
- TSLOADER_IPC_FD: file descriptor of the supervising parent's channel
- TSLOADER_LOG_PATH / TSLOADER_LOG_LEVEL: JSONL log sink
"""

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel
from pydantic import Field

ENV_PREFIX = "TSLOADER_"


class LoaderSettings(BaseModel):
    """Settings shared by the resolve and load hooks."""

    tsconfig_path: Path | None = Field(default=None, description="Override for tsconfig discovery")
    node_version: str = Field(default="20.0.0", description="Host runtime version")
    ipc_fd: int | None = Field(default=None, description="Dependency channel file descriptor")
    log_path: str = "./tsloader.log.jsonl"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "LoaderSettings":
        """Build settings from ``TSLOADER_*`` variables; empty values are ignored."""
        environ = os.environ if environ is None else environ
        values = {}
        for field_name in cls.model_fields:
            value = environ.get(ENV_PREFIX + field_name.upper())
            if value:
                values[field_name] = value
        return cls(**values)
