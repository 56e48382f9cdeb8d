"""Host resolution pipeline boundary.

Models the host build tool's named resolution stages: each stage is an
AsyncHook holding callback-style taps. A tap receives
``(request, resolve_context, callback)`` and must call ``callback`` exactly
once:

- ``callback(None, result)`` - stop with a rewritten request
- ``callback(error)`` - stop with a hard failure
- ``callback()`` - decline, let the pipeline continue unmodified
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

REWRITTEN = "rewritten"
DECLINED = "declined"
ERROR = "error"

Callback = Callable[..., None]
TapFn = Callable[[dict[str, Any], Any, Callback], Any]


@dataclass(frozen=True)
class ResolutionOutcome:
    """Result of one resolution request.

    Attributes:
        kind: rewritten, declined or error
        request: Rewritten request (rewritten only)
        error: Failure (error only)
    """

    kind: str
    request: dict[str, Any] | None = None
    error: BaseException | None = None

    @classmethod
    def rewritten(cls, request: dict[str, Any]) -> ResolutionOutcome:
        return cls(kind=REWRITTEN, request=request)

    @classmethod
    def declined(cls) -> ResolutionOutcome:
        return cls(kind=DECLINED)

    @classmethod
    def failed(cls, error: BaseException) -> ResolutionOutcome:
        return cls(kind=ERROR, error=error)

    @classmethod
    def from_callback_args(cls, *args: Any) -> ResolutionOutcome:
        """Translate callback arguments into an outcome."""
        if not args:
            return cls.declined()
        if args[0] is not None:
            return cls.failed(args[0])
        if len(args) > 1 and args[1] is not None:
            return cls.rewritten(args[1])
        return cls.declined()

    def to_callback_args(self) -> tuple[Any, ...]:
        if self.kind == REWRITTEN:
            return (None, self.request)
        if self.kind == ERROR:
            return (self.error,)
        return ()

    @property
    def is_declined(self) -> bool:
        return self.kind == DECLINED


class AsyncHook:
    """A named resolution stage with callback-style taps, run in order."""

    def __init__(self, name: str):
        self.name = name
        self.taps: list[tuple[str, TapFn]] = []

    def tap_async(self, name: str, fn: TapFn) -> None:
        self.taps.append((name, fn))
        logger.debug(f"[owl:pipeline] {name} tapped into {self.name}")

    async def call(self, request: dict[str, Any], resolve_context: Any = None) -> ResolutionOutcome:
        """Run taps until one rewrites or fails the request.

        Raises:
            RuntimeError: A tap invoked its callback more than once
        """
        loop = asyncio.get_running_loop()
        for tap_name, fn in self.taps:
            future: asyncio.Future[ResolutionOutcome] = loop.create_future()

            def callback(*args: Any, _future=future, _tap=tap_name) -> None:
                if _future.done():
                    raise RuntimeError(f"{_tap} invoked its callback more than once")
                _future.set_result(ResolutionOutcome.from_callback_args(*args))

            fn(request, resolve_context, callback)
            outcome = await future
            if not outcome.is_declined:
                return outcome
        return ResolutionOutcome.declined()

    def __repr__(self) -> str:
        return f"AsyncHook({self.name}, taps={[name for name, _ in self.taps]})"


class HookRegistry:
    """Named stages of the host pipeline."""

    def __init__(self) -> None:
        self._hooks: dict[str, AsyncHook] = {}

    def ensure_hook(self, name: str) -> AsyncHook:
        if name not in self._hooks:
            self._hooks[name] = AsyncHook(name)
        return self._hooks[name]

    def get_hook(self, name: str) -> AsyncHook:
        """Return an existing stage.

        Raises:
            KeyError: No stage with that name
        """
        return self._hooks[name]

    def __contains__(self, name: object) -> bool:
        return name in self._hooks
