"""Module-to-path resolution over the cached load-path index.

Resolution order (first match wins):
1. Indexed lookup: each load path in order, against the cached file index
2. Live filesystem: load paths inside the working tree, checked on disk
3. Requesting directory: the requester's own directory, inside the working tree

At every load path the primary (``.rb``) variant is tried before the compiled
(``.js``) one. A miss returns None; the host then falls back to its own
default resolution.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Protocol

from .cache_store import CacheState
from .config import ResolverConfig
from .paths import is_within

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionRequest:
    """One module reference seen by the host pipeline."""

    requesting_directory: str
    specifier: str


@dataclass(frozen=True)
class SuffixVariants:
    """The two file names a logical module may be satisfied by."""

    primary: str
    compiled: str

    def __iter__(self):
        yield self.primary
        yield self.compiled


def normalize_specifier(specifier: str) -> str:
    """Turn a require specifier into a root-relative logical path.

    './module.rb' -> '/module.rb', '/module.rb' stays, 'module.rb' -> '/module.rb'
    """
    if specifier.startswith("./"):
        return specifier[1:]
    if specifier.startswith("/"):
        return specifier
    return "/" + specifier


def suffix_variants(logical_path: str, primary_suffix: str = ".rb", compiled_suffix: str = ".js") -> SuffixVariants:
    """Derive both suffix variants of a logical path.

    Opal accepts '.rb', '.js' and '.js.rb', so '/a.rb' pairs with '/a.js' and
    '/a.js' pairs with '/a.js.rb'.

    Raises:
        ValueError: logical_path ends in neither suffix
    """
    if logical_path.endswith(primary_suffix):
        stem = logical_path[: len(logical_path) - len(primary_suffix)]
        return SuffixVariants(primary=logical_path, compiled=stem + compiled_suffix)
    if logical_path.endswith(compiled_suffix):
        return SuffixVariants(primary=logical_path + primary_suffix, compiled=logical_path)
    raise ValueError(f"Unsupported module suffix: {logical_path}")


class LookupStrategy(Protocol):
    """One resolution tier."""

    name: str

    def try_resolve(self, request: ResolutionRequest, variants: SuffixVariants) -> str | None: ...


class IndexedLookup:
    """Membership test of load_path + logical path in the cached index."""

    name = "index"

    def __init__(self, state: CacheState):
        self.state = state

    def try_resolve(self, request: ResolutionRequest, variants: SuffixVariants) -> str | None:
        for load_path in self.state.load_paths:
            for logical in variants:
                candidate = load_path + logical
                if candidate in self.state.index:
                    return candidate
        return None


class LiveFilesystemLookup:
    """On-disk check for load paths inside the working tree.

    Those load paths are never indexed, and files there may appear after the
    cache was built.
    """

    name = "filesystem"

    def __init__(self, state: CacheState, working_tree: str):
        self.state = state
        self.working_tree = working_tree

    def try_resolve(self, request: ResolutionRequest, variants: SuffixVariants) -> str | None:
        for load_path in self.state.load_paths:
            if not is_within(load_path, self.working_tree):
                continue
            for logical in variants:
                candidate = load_path + logical
                if os.path.exists(candidate):
                    return candidate
        return None


class RequestingDirectoryLookup:
    """Primary variant next to the requesting file, inside the working tree only."""

    name = "requesting_directory"

    def __init__(self, working_tree: str):
        self.working_tree = working_tree

    def try_resolve(self, request: ResolutionRequest, variants: SuffixVariants) -> str | None:
        candidate = request.requesting_directory + variants.primary
        if is_within(candidate, self.working_tree) and os.path.exists(candidate):
            return candidate
        return None


def default_strategies(state: CacheState, config: ResolverConfig) -> tuple[LookupStrategy, ...]:
    return (
        IndexedLookup(state),
        LiveFilesystemLookup(state, config.working_tree),
        RequestingDirectoryLookup(config.working_tree),
    )


class Resolver:
    """Resolves Opal require specifiers to absolute file paths.

    Owns the loaded CacheState for its lifetime; the state is never mutated.
    """

    def __init__(
        self,
        state: CacheState,
        config: ResolverConfig,
        strategies: tuple[LookupStrategy, ...] | None = None,
    ):
        if not state.is_loaded:
            raise ValueError("Resolver requires a loaded cache state")
        self.state = state
        self.config = config
        self.strategies = strategies if strategies is not None else default_strategies(state, config)

    def handles(self, specifier: str) -> bool:
        """True if the specifier ends in one of the recognized suffixes."""
        return specifier.endswith(self.config.suffixes)

    def resolve(self, requesting_directory: str, specifier: str) -> str | None:
        """Resolve a specifier, or return None to let the host handle it."""
        path, _tier = self.resolve_with_tier(requesting_directory, specifier)
        return path

    def resolve_with_tier(self, requesting_directory: str, specifier: str) -> tuple[str | None, str | None]:
        """Resolve and report which tier matched.

        Returns:
            Tuple of (path, tier_name); both None on a miss
        """
        if not self.handles(specifier):
            return (None, None)

        request = ResolutionRequest(requesting_directory=requesting_directory, specifier=specifier)
        logical = normalize_specifier(specifier)
        variants = suffix_variants(logical, self.config.primary_suffix, self.config.compiled_suffix)

        for strategy in self.strategies:
            if path := strategy.try_resolve(request, variants):
                logger.debug(f"[owl:resolve] {specifier} -> {path} ({strategy.name})")
                return (path, strategy.name)

        logger.debug(f"[owl:resolve] {specifier} not found (from {requesting_directory})")
        return (None, None)

    def __repr__(self) -> str:
        tiers = ", ".join(s.name for s in self.strategies)
        return f"Resolver({len(self.state.load_paths)} load paths; {tiers})"
