"""Tests for environment-driven settings and logging setup."""

import json
import logging
from pathlib import Path

import pytest
from pydantic import ValidationError
from tsloader.logging_setup import JsonlHandler
from tsloader.logging_setup import init_logging
from tsloader.settings import LoaderSettings


class TestLoaderSettings:
    def test_defaults(self):
        settings = LoaderSettings.from_env({})

        assert settings.tsconfig_path is None
        assert settings.node_version == "20.0.0"
        assert settings.ipc_fd is None
        assert settings.log_level == "INFO"

    def test_reads_prefixed_variables(self):
        settings = LoaderSettings.from_env(
            {
                "TSLOADER_TSCONFIG_PATH": "configs/tsconfig.build.json",
                "TSLOADER_NODE_VERSION": "v18.19.0",
                "TSLOADER_IPC_FD": "3",
                "TSLOADER_LOG_LEVEL": "DEBUG",
                "UNRELATED": "x",
            }
        )

        assert settings.tsconfig_path == Path("configs/tsconfig.build.json")
        assert settings.node_version == "v18.19.0"
        assert settings.ipc_fd == 3
        assert settings.log_level == "DEBUG"

    def test_empty_values_are_ignored(self):
        settings = LoaderSettings.from_env({"TSLOADER_TSCONFIG_PATH": "", "TSLOADER_IPC_FD": ""})
        assert settings.tsconfig_path is None
        assert settings.ipc_fd is None

    def test_invalid_fd(self):
        with pytest.raises(ValidationError):
            LoaderSettings.from_env({"TSLOADER_IPC_FD": "stdout"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("TSLOADER_NODE_VERSION", "22.1.0")
        assert LoaderSettings.from_env().node_version == "22.1.0"


class TestLogging:
    @pytest.fixture(autouse=True)
    def _restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in list(root.handlers):
            if handler not in handlers:
                root.removeHandler(handler)
        root.setLevel(level)

    def test_jsonl_records(self, tmp_path):
        path = tmp_path / "logs" / "tsloader.log.jsonl"
        init_logging(str(path), "DEBUG")

        logging.getLogger("tsloader.resolver").debug("[resolve] ./a -> file:///p/a.ts", extra={"stage": "alias"})

        record = json.loads(path.read_text().splitlines()[-1])
        assert record["lvl"] == "DEBUG"
        assert record["logger"] == "tsloader.resolver"
        assert record["message"] == "[resolve] ./a -> file:///p/a.ts"
        assert record["schema"]["name"] == "tsloader.log"
        assert record["stage"] == "alias"

    def test_reinit_does_not_duplicate_handlers(self, tmp_path):
        init_logging(str(tmp_path / "a.jsonl"))
        init_logging(str(tmp_path / "b.jsonl"), console=True)

        handlers = [h for h in logging.getLogger().handlers if isinstance(h, JsonlHandler)]
        assert [h.path.name for h in handlers] == ["b.jsonl"]
