"""Tests for module-to-path resolution."""

from pathlib import Path
from unittest.mock import patch

import pytest
from owl_resolver.cache_store import CacheState
from owl_resolver.config import ResolverConfig
from owl_resolver.resolver import IndexedLookup
from owl_resolver.resolver import LiveFilesystemLookup
from owl_resolver.resolver import RequestingDirectoryLookup
from owl_resolver.resolver import ResolutionRequest
from owl_resolver.resolver import Resolver
from owl_resolver.resolver import SuffixVariants
from owl_resolver.resolver import normalize_specifier
from owl_resolver.resolver import suffix_variants


def _resolver(config: ResolverConfig, load_paths: list[str], entries: list[str]) -> Resolver:
    return Resolver(CacheState.loaded(load_paths, entries), config)


class TestNormalizeSpecifier:
    @pytest.mark.parametrize(
        ("specifier", "expected"),
        [
            ("./foo.rb", "/foo.rb"),
            ("/foo.rb", "/foo.rb"),
            ("foo.rb", "/foo.rb"),
            ("opal/core/kernel.js", "/opal/core/kernel.js"),
            ("../foo.rb", "/../foo.rb"),
        ],
    )
    def test_normalizes_to_root_relative(self, specifier, expected):
        assert normalize_specifier(specifier) == expected


class TestSuffixVariants:
    def test_primary_suffix(self):
        assert suffix_variants("/a/b.rb") == SuffixVariants(primary="/a/b.rb", compiled="/a/b.js")

    def test_compiled_suffix_pairs_with_js_rb(self):
        assert suffix_variants("/a/b.js") == SuffixVariants(primary="/a/b.js.rb", compiled="/a/b.js")

    def test_iterates_primary_first(self):
        assert list(suffix_variants("/x.rb")) == ["/x.rb", "/x.js"]

    def test_unsupported_suffix_raises(self):
        with pytest.raises(ValueError):
            suffix_variants("/x.css")


class TestScenarios:
    def test_dot_slash_specifier_resolves_from_indexed_load_path(self, config: ResolverConfig):
        resolver = _resolver(config, ["/gems/lib"], ["/gems/lib/foo.rb"])
        assert resolver.resolve("/app/src", "./foo.rb") == "/gems/lib/foo.rb"

    def test_missing_module_returns_none_without_raising(self, config: ResolverConfig):
        resolver = _resolver(config, ["/gems/lib"], ["/gems/lib/foo.rb"])
        assert resolver.resolve("/app/src", "bar.js") is None

    def test_file_created_after_indexing_is_found_on_disk(self, config: ResolverConfig, project: Path):
        assets = project / "assets"
        assets.mkdir()
        resolver = _resolver(config, [str(assets)], [])

        (assets / "new.rb").write_text("puts 'new'\n")

        path, tier = resolver.resolve_with_tier(str(project / "src"), "new.rb")
        assert path == f"{assets}/new.rb"
        assert tier == "filesystem"


class TestSuffixHandling:
    def test_unsupported_suffix_declines_without_filesystem_access(self, config: ResolverConfig):
        resolver = _resolver(config, [config.working_tree], [])

        with patch("owl_resolver.resolver.os.path.exists", side_effect=AssertionError("touched disk")):
            assert resolver.resolve(config.working_tree, "./style.css") is None
            assert resolver.resolve(config.working_tree, "lodash") is None

    def test_rb_request_satisfied_by_compiled_file(self, config: ResolverConfig):
        resolver = _resolver(config, ["/gems/lib"], ["/gems/lib/native.js"])
        assert resolver.resolve("/app/src", "native.rb") == "/gems/lib/native.js"

    def test_js_request_satisfied_by_js_rb_source(self, config: ResolverConfig):
        resolver = _resolver(config, ["/gems/lib"], ["/gems/lib/bridge.js.rb"])
        assert resolver.resolve("/app/src", "bridge.js") == "/gems/lib/bridge.js.rb"

    def test_primary_preferred_over_compiled_at_same_load_path(self, config: ResolverConfig):
        resolver = _resolver(config, ["/gems/lib"], ["/gems/lib/k.js", "/gems/lib/k.rb"])
        assert resolver.resolve("/app/src", "k.rb") == "/gems/lib/k.rb"


class TestOrdering:
    def test_first_load_path_wins(self, config: ResolverConfig):
        resolver = _resolver(config, ["/first", "/second"], ["/second/foo.rb", "/first/foo.rb"])
        assert resolver.resolve("/app/src", "foo.rb") == "/first/foo.rb"

    def test_earlier_load_path_compiled_beats_later_primary(self, config: ResolverConfig):
        resolver = _resolver(config, ["/first", "/second"], ["/first/foo.js", "/second/foo.rb"])
        assert resolver.resolve("/app/src", "foo.rb") == "/first/foo.js"

    def test_load_path_lacking_entry_is_skipped(self, config: ResolverConfig):
        resolver = _resolver(config, ["/empty", "/gems/lib"], ["/gems/lib/foo.rb"])
        assert resolver.resolve("/app/src", "foo.rb") == "/gems/lib/foo.rb"

    def test_index_beats_live_filesystem(self, config: ResolverConfig, project: Path):
        assets = project / "assets"
        assets.mkdir()
        (assets / "foo.rb").write_text("")
        resolver = _resolver(config, [str(assets), "/gems/lib"], ["/gems/lib/foo.rb"])

        path, tier = resolver.resolve_with_tier(str(project / "src"), "foo.rb")

        assert path == "/gems/lib/foo.rb"
        assert tier == "index"


class TestLiveFilesystemTier:
    def test_ignores_load_paths_outside_working_tree(self, config: ResolverConfig, gems: Path):
        resolver = _resolver(config, [str(gems)], [])
        assert resolver.resolve(str(config.project_root / "src"), "foo.rb") is None

    def test_compiled_variant_on_disk(self, config: ResolverConfig, project: Path):
        assets = project / "assets"
        assets.mkdir()
        (assets / "app.js").write_text("")
        strategy = LiveFilesystemLookup(CacheState.loaded([str(assets)], []), config.working_tree)

        found = strategy.try_resolve(ResolutionRequest(str(project), "app.rb"), suffix_variants("/app.rb"))

        assert found == f"{assets}/app.js"


class TestRequestingDirectoryTier:
    def test_finds_sibling_in_working_tree(self, config: ResolverConfig, project: Path):
        src = project / "src"
        (src / "helper.rb").write_text("")
        resolver = _resolver(config, [], [])

        path, tier = resolver.resolve_with_tier(str(src), "./helper.rb")

        assert path == f"{src}/helper.rb"
        assert tier == "requesting_directory"

    def test_only_primary_variant_is_checked(self, config: ResolverConfig, project: Path):
        src = project / "src"
        (src / "helper.js").write_text("")
        resolver = _resolver(config, [], [])

        assert resolver.resolve(str(src), "./helper.rb") is None

    def test_outside_working_tree_is_ignored(self, config: ResolverConfig, gems: Path):
        strategy = RequestingDirectoryLookup(config.working_tree)
        found = strategy.try_resolve(ResolutionRequest(str(gems), "foo.rb"), suffix_variants("/foo.rb"))
        assert found is None


class TestStrategies:
    def test_indexed_lookup_alone(self):
        strategy = IndexedLookup(CacheState.loaded(["/g"], ["/g/a.rb"]))
        assert strategy.try_resolve(ResolutionRequest("/x", "a.rb"), suffix_variants("/a.rb")) == "/g/a.rb"

    def test_custom_strategy_order(self, config: ResolverConfig):
        class Always:
            name = "always"

            def try_resolve(self, request, variants):
                return "/always" + variants.primary

        state = CacheState.loaded(["/g"], ["/g/a.rb"])
        resolver = Resolver(state, config, strategies=(Always(), IndexedLookup(state)))

        assert resolver.resolve_with_tier("/x", "a.rb") == ("/always/a.rb", "always")

    def test_requires_loaded_state(self, config: ResolverConfig):
        with pytest.raises(ValueError):
            Resolver(CacheState.unloaded(), config)
