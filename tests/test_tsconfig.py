"""Tests for tsconfig parsing, discovery and the config store caches."""

from unittest.mock import patch

import pytest
from tsloader import tsconfig as tsconfig_module
from tsloader.errors import CacheInconsistencyError
from tsloader.errors import MalformedMetadataError
from tsloader.paths import path_to_url
from tsloader.tsconfig import ConfigStore
from tsloader.tsconfig import find_tsconfig
from tsloader.tsconfig import parse_tsconfig
from tsloader.tsconfig import strip_jsonc


class TestStripJsonc:
    def test_removes_comments(self):
        text = '{\n  // line\n  "a": 1, /* block */ "b": "x"\n}'
        assert strip_jsonc(text).replace(" ", "").replace("\n", "") == '{"a":1,"b":"x"}'

    def test_keeps_comment_markers_inside_strings(self):
        text = '{"url": "http://example.com/*path*/"}'
        assert strip_jsonc(text) == text

    def test_removes_trailing_commas(self):
        assert strip_jsonc('{"a": [1, 2,], }') == '{"a": [1, 2] }'

    def test_trailing_comma_before_comment(self):
        assert strip_jsonc('{"a": 1, // done\n}').replace("\n", "") == '{"a": 1 }'

    def test_escaped_quotes_in_strings(self):
        text = r'{"a": "say \"hi\" // not a comment"}'
        assert strip_jsonc(text) == text


class TestParseTsconfig:
    def test_parses_jsonc(self, write):
        path = write(
            "tsconfig.json",
            """{
              // project settings
              "compilerOptions": {"strict": true, "paths": {"@/*": ["./src/*"],},},
            }""",
        )
        config = parse_tsconfig(path)
        assert config["compilerOptions"]["strict"] is True
        assert config["compilerOptions"]["paths"] == {"@/*": ["./src/*"]}

    def test_malformed_config_is_fatal(self, write):
        path = write("tsconfig.json", '{"compilerOptions": ')
        with pytest.raises(MalformedMetadataError):
            parse_tsconfig(path)

    def test_invalid_utf8_is_fatal(self, tmp_path):
        path = tmp_path / "tsconfig.json"
        path.write_bytes(b'{"compilerOptions": {"outDir": "\xff"}}')
        with pytest.raises(MalformedMetadataError, match="invalid UTF-8"):
            parse_tsconfig(path)

    def test_extends_merges_compiler_options(self, write):
        write("tsconfig.base.json", {"compilerOptions": {"strict": True, "target": "es2020"}, "include": ["src"]})
        path = write("tsconfig.json", {"extends": "./tsconfig.base.json", "compilerOptions": {"target": "esnext"}})

        config = parse_tsconfig(path)

        assert "extends" not in config
        assert config["compilerOptions"] == {"strict": True, "target": "esnext"}
        assert config["include"] == ["src"]

    def test_extends_without_json_suffix(self, write):
        write("configs/base.json", {"compilerOptions": {"jsx": "react-jsx"}})
        path = write("tsconfig.json", {"extends": "./configs/base"})
        assert parse_tsconfig(path)["compilerOptions"]["jsx"] == "react-jsx"

    def test_extends_rebases_paths(self, write):
        write("shared/tsconfig.json", {"compilerOptions": {"baseUrl": ".", "outDir": "dist"}, "include": ["lib"]})
        path = write("app/tsconfig.json", {"extends": "../shared/tsconfig.json"})

        config = parse_tsconfig(path)

        assert config["compilerOptions"]["baseUrl"] == "../shared"
        assert config["compilerOptions"]["outDir"] == "../shared/dist"
        assert config["include"] == ["../shared/lib"]

    def test_extends_rebases_paths_without_base_url(self, write):
        write("shared/tsconfig.json", {"compilerOptions": {"paths": {"@/*": ["./src/*"]}}})
        path = write("app/tsconfig.json", {"extends": "../shared/tsconfig.json"})

        config = parse_tsconfig(path)

        assert config["compilerOptions"]["paths"] == {"@/*": ["../shared/src/*"]}

    def test_extends_list_applies_in_order(self, write):
        write("a.json", {"compilerOptions": {"target": "es5", "strict": True}})
        write("b.json", {"compilerOptions": {"target": "es2022"}})
        path = write("tsconfig.json", {"extends": ["./a.json", "./b.json"]})

        assert parse_tsconfig(path)["compilerOptions"] == {"target": "es2022", "strict": True}

    def test_missing_extended_config_is_fatal(self, write):
        path = write("tsconfig.json", {"extends": "./missing.json"})
        with pytest.raises(MalformedMetadataError):
            parse_tsconfig(path)

    def test_circular_extends_is_fatal(self, write):
        write("a.json", {"extends": "./b.json"})
        write("b.json", {"extends": "./a.json"})
        with pytest.raises(MalformedMetadataError, match="circular"):
            parse_tsconfig(write("tsconfig.json", {"extends": "./a.json"}))

    def test_package_extends_is_ignored(self, write):
        path = write("tsconfig.json", {"extends": "@tsconfig/node20", "compilerOptions": {"strict": True}})
        assert parse_tsconfig(path)["compilerOptions"] == {"strict": True}


class TestFindTsconfig:
    def test_finds_nearest(self, write, tmp_path):
        write("tsconfig.json", {})
        nested = write("packages/a/tsconfig.json", {})
        source = write("packages/a/src/index.ts")

        assert find_tsconfig(path_to_url(source)) == nested
        assert find_tsconfig(path_to_url(tmp_path / "other.ts")) == tmp_path / "tsconfig.json"

    def test_skips_node_modules_directories(self, write, tmp_path):
        write("tsconfig.json", {})
        write("node_modules/tsconfig.json", {})
        source = write("node_modules/dep.ts")

        assert find_tsconfig(path_to_url(source)) == tmp_path / "tsconfig.json"


class TestConfigStore:
    @pytest.mark.asyncio
    async def test_files_under_one_config_share_one_parse(self, write):
        write("tsconfig.json", {"compilerOptions": {"paths": {"@/*": ["./src/*"]}}})
        first = write("src/a.ts")
        second = write("src/nested/b.ts")
        store = ConfigStore()

        with patch.object(tsconfig_module, "parse_tsconfig", wraps=parse_tsconfig) as parse:
            config_a = await store.load(path_to_url(first))
            config_b = await store.load(path_to_url(second))
            again = await store.load(path_to_url(first))

        assert parse.call_count == 1
        assert config_a is config_b is again
        assert config_a.files_matcher(first) == config_b.files_matcher(second)
        assert config_a.paths_matcher is config_b.paths_matcher

    @pytest.mark.asyncio
    async def test_no_config_is_cached(self, tmp_path):
        store = ConfigStore(file_name="tsloader-test-missing.json")
        source = tmp_path / "a.ts"

        assert await store.load(path_to_url(source)) is None
        (tmp_path / "tsloader-test-missing.json").write_text("{}")
        assert await store.load(path_to_url(source)) is None

    @pytest.mark.asyncio
    async def test_override_is_used_for_every_file(self, write, tmp_path):
        override = write("configs/custom.json", {"compilerOptions": {"baseUrl": "."}})
        write("tsconfig.json", {"compilerOptions": {"strict": True}})
        store = ConfigStore(override_path=override)

        with patch.object(tsconfig_module, "parse_tsconfig", wraps=parse_tsconfig) as parse:
            config = await store.load(path_to_url(tmp_path / "a.ts"))
            other = await store.load(path_to_url(tmp_path / "deep" / "b.ts"))

        assert parse.call_count == 0
        assert config is other is store.override
        assert config.path == override.resolve()

    def test_malformed_override_is_fatal(self, write):
        override = write("tsconfig.json", "{ oops")
        with pytest.raises(MalformedMetadataError):
            ConfigStore(override_path=override)

    @pytest.mark.asyncio
    async def test_malformed_discovered_config_is_fatal(self, write):
        write("tsconfig.json", "{ oops")
        source = write("src/a.ts")
        with pytest.raises(MalformedMetadataError):
            await ConfigStore().load(path_to_url(source))

    @pytest.mark.asyncio
    async def test_inconsistent_cache_is_fatal(self, write):
        write("tsconfig.json", {})
        source = write("src/a.ts")
        store = ConfigStore()
        config = await store.load(path_to_url(source))

        # Simulate a lost document entry
        store._configs.pop(config.path)

        with pytest.raises(CacheInconsistencyError):
            await store.load(path_to_url(source))

    @pytest.mark.asyncio
    async def test_match_aliases(self, write, tmp_path):
        write("tsconfig.json", {"compilerOptions": {"paths": {"@/*": ["./src/*", "./lib/*"]}}})
        parent = path_to_url(write("src/index.ts"))
        store = ConfigStore()

        assert await store.match_aliases("@/util", parent) == [
            str(tmp_path / "src" / "util"),
            str(tmp_path / "lib" / "util"),
        ]
        assert await store.match_aliases("react", parent) == []

    @pytest.mark.asyncio
    async def test_match_aliases_without_paths(self, write):
        write("tsconfig.json", {"compilerOptions": {"strict": True}})
        parent = path_to_url(write("src/index.ts"))
        assert await ConfigStore().match_aliases("@/util", parent) == []

    @pytest.mark.asyncio
    async def test_files_match_returns_raw_document(self, write):
        write("tsconfig.json", {"compilerOptions": {"jsx": "preserve"}, "include": ["src"]})
        governed = write("src/a.tsx")
        outside = write("scripts/b.ts")
        store = ConfigStore()

        assert await store.files_match(governed) == {"compilerOptions": {"jsx": "preserve"}, "include": ["src"]}
        assert await store.files_match(outside) is None
