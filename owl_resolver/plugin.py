"""Opal resolver step for the host build pipeline.

Usage:
    plugin = OpalResolverPlugin("resolve", "resolved")
    await plugin.start()        # load or rebuild the cache once
    plugin.apply(hooks)         # tap into the "resolve" stage

Startup (cache load, possibly running the Ruby toolchain) is a separate,
awaited phase. Requests arriving before it completes are rejected.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .cache_store import CacheStore
from .config import ResolverConfig
from .config import load_config
from .pipeline import Callback
from .pipeline import HookRegistry
from .pipeline import ResolutionOutcome
from .resolver import Resolver

logger = logging.getLogger(__name__)

PLUGIN_NAME = "OpalResolverPlugin"


class OpalResolverPlugin:
    """Rewrites Opal requires to absolute paths from the load-path cache."""

    name = PLUGIN_NAME

    def __init__(
        self,
        source: str,
        target: str,
        config: ResolverConfig | None = None,
        store: CacheStore | None = None,
    ):
        self.source = source
        self.target = target
        self.config = config or load_config()
        self.store = store or CacheStore(self.config)
        self.resolver: Resolver | None = None
        self._pending: set[asyncio.Task[None]] = set()

    async def start(self) -> Resolver:
        """Load or rebuild the cache and build the resolver.

        Idempotent. Configuration and external tool errors propagate.
        """
        if self.resolver is not None:
            return self.resolver
        state = await asyncio.to_thread(self.store.load_or_rebuild)
        self.resolver = Resolver(state, self.config)
        logger.debug(f"[owl:plugin] started: {self.resolver!r}")
        return self.resolver

    async def handle(self, request: dict[str, Any]) -> ResolutionOutcome:
        """Resolve one request from the pipeline.

        Args:
            request: Host request; ``path`` is the requesting directory and
                ``request`` the specifier

        Raises:
            RuntimeError: start() has not completed
        """
        if self.resolver is None:
            raise RuntimeError(f"{PLUGIN_NAME} used before start() completed")

        try:
            absolute_path = self.resolver.resolve(request["path"], request["request"])
        except Exception as e:
            logger.exception(f"[owl:plugin] failed to resolve {request.get('request')!r}")
            return ResolutionOutcome.failed(e)

        if absolute_path is None:
            return ResolutionOutcome.declined()
        return ResolutionOutcome.rewritten({**request, "path": absolute_path})

    def tap_async(self, request: dict[str, Any], resolve_context: Any, callback: Callback) -> asyncio.Task[None]:
        """Callback-style entry point registered with the host stage.

        Schedules the request on the running loop; ``callback`` is invoked
        exactly once with the outcome.
        """
        task = asyncio.get_running_loop().create_task(self._complete(request, callback))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _complete(self, request: dict[str, Any], callback: Callback) -> None:
        try:
            outcome = await self.handle(request)
        except Exception as e:
            outcome = ResolutionOutcome.failed(e)
        callback(*outcome.to_callback_args())

    def apply(self, hooks: HookRegistry) -> None:
        """Register this step on the source stage."""
        hooks.ensure_hook(self.target)
        hooks.ensure_hook(self.source).tap_async(PLUGIN_NAME, self.tap_async)

    def __repr__(self) -> str:
        state = "started" if self.resolver is not None else "not started"
        return f"{PLUGIN_NAME}({self.source} -> {self.target}, {state})"
