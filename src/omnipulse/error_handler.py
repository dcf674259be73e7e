# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Error capture: explicit exceptions, guarded calls, and global uncaught-error hooks."""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
import traceback
from collections.abc import Awaitable, Callable, Mapping
from types import TracebackType
from typing import TYPE_CHECKING, Any, TypeVar

from .events import ErrorEvent, utcnow

if TYPE_CHECKING:
    from .client import OmniPulse

logger = logging.getLogger(__name__)

T = TypeVar("T")


def format_stack(exc: BaseException, tb: TracebackType | None = None) -> str | None:
    tb = tb if tb is not None else exc.__traceback__
    if tb is None:
        return None
    return "".join(traceback.format_exception(type(exc), exc, tb))


class ErrorHandler:
    """Turns exceptions into ``ErrorEvent``s on the bound client."""

    def __init__(self, client: OmniPulse) -> None:
        self._client = client

    def capture_exception(
        self,
        exc: BaseException,
        tb: TracebackType | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        event = ErrorEvent(
            timestamp=utcnow(),
            message=str(exc) or type(exc).__name__,
            stack_trace=format_stack(exc, tb),
            error_type=type(exc).__name__,
            context=context,
        )
        self._client.add_error(event)

    def capture_uncaught(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
        *,
        source: str,
        description: str | None = None,
    ) -> None:
        """Record an error that escaped to a global hook."""
        context: dict[str, Any] = {"library": source}
        if description:
            context["context"] = description
        event = ErrorEvent(
            timestamp=utcnow(),
            message=str(exc) or exc_type.__name__,
            stack_trace="".join(traceback.format_exception(exc_type, exc, tb)),
            error_type=exc_type.__name__,
            context=context,
        )
        self._client.add_error(event)

    def run_guarded(
        self,
        fn: Callable[..., T],
        *args: Any,
        context: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> T | None:
        """Call *fn*; on failure record the error and return None."""
        try:
            return fn(*args, **kwargs)
        except Exception as e:
            self.capture_exception(e, context=context)
            return None

    async def run_guarded_async(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        context: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> T | None:
        """Await *fn*; on failure record the error and return None."""
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            self.capture_exception(e, context=context)
            return None

    def install_global_handlers(self, loop: asyncio.AbstractEventLoop | None = None) -> Callable[[], None]:
        """Hook sys, threading and (optionally) asyncio uncaught-error reporting.

        Each hook records the error, then chains to the hook it replaced.
        Returns a callable that restores the previous hooks.
        """
        prev_excepthook = sys.excepthook
        prev_threading_hook = threading.excepthook

        def _excepthook(exc_type: type[BaseException], exc: BaseException, tb: TracebackType | None) -> None:
            if not issubclass(exc_type, KeyboardInterrupt):
                self._record_safely(exc_type, exc, tb, source="sys.excepthook")
            prev_excepthook(exc_type, exc, tb)

        def _threading_hook(args: threading.ExceptHookArgs) -> None:
            if args.exc_value is not None:
                thread_name = args.thread.name if args.thread is not None else None
                self._record_safely(
                    args.exc_type,
                    args.exc_value,
                    args.exc_traceback,
                    source="threading",
                    description=f"thread {thread_name}" if thread_name else None,
                )
            prev_threading_hook(args)

        sys.excepthook = _excepthook
        threading.excepthook = _threading_hook

        prev_loop_handler = None
        if loop is not None:
            prev_loop_handler = loop.get_exception_handler()

            def _loop_handler(lp: asyncio.AbstractEventLoop, ctx: dict[str, Any]) -> None:
                exc = ctx.get("exception")
                if isinstance(exc, BaseException):
                    self._record_safely(
                        type(exc), exc, exc.__traceback__, source="asyncio", description=ctx.get("message")
                    )
                if prev_loop_handler is not None:
                    prev_loop_handler(lp, ctx)
                else:
                    lp.default_exception_handler(ctx)

            loop.set_exception_handler(_loop_handler)

        def _restore() -> None:
            sys.excepthook = prev_excepthook
            threading.excepthook = prev_threading_hook
            if loop is not None:
                loop.set_exception_handler(prev_loop_handler)

        return _restore

    def _record_safely(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
        *,
        source: str,
        description: str | None = None,
    ) -> None:
        # A failing capture must not mask the original error in the chained hook.
        try:
            self.capture_uncaught(exc_type, exc, tb, source=source, description=description)
        except Exception:
            logger.debug("Failed to record uncaught error from %s", source, exc_info=True)
