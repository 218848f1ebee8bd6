"""Predicate watches driven by document mutation notifications."""

import asyncio
import time
from typing import Any, Optional, Set, TYPE_CHECKING

from ..core.errors import (
    CDPError,
    EvaluationFailedError,
    ExecutionContextDestroyedError,
    FrameDetachedError,
    TimeoutError,
)
from ..types import VisibilityMode
from .scripts import SELECTOR_PREDICATE

if TYPE_CHECKING:
    from ..core.execution_context import ElementHandle, ExecutionContext, JSHandle
    from ..core.frame_manager import Frame


class WaitTask:
    """
    Re-evaluates an in-page predicate until it returns a truthy value.

    The predicate runs once as soon as the frame's execution context is
    available and again after every mutation notification from that context.
    The task is awaitable and settles exactly once: with a handle to the
    predicate's result, or with :class:`TimeoutError`,
    :class:`FrameDetachedError` or :class:`EvaluationFailedError`.

    Replacing the execution context (a cross-document navigation) counts as
    detachment unless ``survive_navigation`` is set, in which case the watch
    moves over to the new context.
    """

    def __init__(
        self,
        frame: "Frame",
        predicate: str,
        title: str,
        timeout_ms: Optional[int],
        *args: Any,
        survive_navigation: bool = False,
    ):
        loop = asyncio.get_running_loop()
        self.frame = frame
        self.title = title
        self.timeout_ms = timeout_ms
        self.created_at = time.monotonic()
        self._predicate = predicate
        self._args = args
        self._survive_navigation = survive_navigation
        self._logger = frame.logger.child(component="wait_task")

        self._future: "asyncio.Future[JSHandle]" = loop.create_future()
        self._future.add_done_callback(self._on_settled)
        self._context: Optional["ExecutionContext"] = None
        self._generation = frame.execution_context_generation
        self._evaluating = False
        self._dirty = False
        self._tasks: Set[asyncio.Task] = set()

        self._timeout_handle: Optional[asyncio.TimerHandle] = None
        if timeout_ms:
            self._timeout_handle = loop.call_later(timeout_ms / 1000, self._on_timeout)

        frame._wait_tasks.add(self)
        self._logger.debug("wait:start", f"Waiting for {title}", timeout_ms=timeout_ms)
        self._spawn(self._install())

    def __await__(self):
        return self._future.__await__()

    @property
    def done(self) -> bool:
        return self._future.done()

    @property
    def result(self) -> Optional["JSHandle"]:
        """Resolved handle, or None while pending or after a failure."""
        if self._future.done() and not self._future.cancelled() and self._future.exception() is None:
            return self._future.result()
        return None

    @property
    def failure(self) -> Optional[BaseException]:
        """Failure reason, or None while pending or after success."""
        if not self._future.done():
            return None
        if self._future.cancelled():
            return asyncio.CancelledError()
        return self._future.exception()

    def terminate(self, error: BaseException) -> None:
        """Fail the wait with ``error`` unless it already settled."""
        if not self._future.done():
            self._future.set_exception(error)

    def cancel(self) -> None:
        """Cancel the wait from the outside."""
        self._future.cancel()

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _install(self) -> None:
        generation = self._generation
        try:
            context = await self.frame.execution_context()
            if self.done or generation != self._generation:
                return
            self._context = context
            context.add_mutation_listener(self._on_mutation)
            await context.ensure_mutation_observer()
        except ExecutionContextDestroyedError:
            # The generation change that follows decides the outcome
            return
        except (CDPError, EvaluationFailedError) as e:
            self.terminate(e)
            return
        await self._evaluate()

    def _on_mutation(self) -> None:
        if self.done:
            return
        if self._evaluating:
            self._dirty = True
            return
        self._spawn(self._evaluate())

    async def _evaluate(self) -> None:
        context = self._context
        if context is None or self.done:
            return
        self._evaluating = True
        try:
            while True:
                self._dirty = False
                try:
                    handle = await context.evaluate_handle(self._predicate, *self._args)
                except ExecutionContextDestroyedError:
                    return
                except (CDPError, EvaluationFailedError) as e:
                    self.terminate(e)
                    return
                if self.done or context is not self._context:
                    await handle.dispose()
                    return
                if handle.is_truthy():
                    self._future.set_result(handle)
                    return
                await handle.dispose()
                if not self._dirty:
                    return
        finally:
            self._evaluating = False

    def _on_context_lost(self) -> None:
        """Called by the frame when its execution context generation advances."""
        if self.done:
            return
        if self._context is not None:
            self._context.remove_mutation_listener(self._on_mutation)
            self._context = None
        if not self._survive_navigation:
            self.terminate(FrameDetachedError(f"waiting for {self.title}", self.frame.id))
            return
        self._generation = self.frame.execution_context_generation
        self._logger.debug("wait:rerun", f"Re-installing wait for {self.title} after navigation")
        self._spawn(self._install())

    def _on_timeout(self) -> None:
        self.terminate(TimeoutError(f"waiting for {self.title}", self.timeout_ms))

    def _on_settled(self, future: asyncio.Future) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
        if self._context is not None:
            self._context.remove_mutation_listener(self._on_mutation)
        self.frame._wait_tasks.discard(self)
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        if future.cancelled():
            self._logger.debug("wait:cancel", f"Wait for {self.title} cancelled")
            return
        # Marks the exception retrieved so un-awaited waits stay quiet
        error = future.exception()
        if error is not None:
            self._logger.debug("wait:fail", f"Wait for {self.title} failed", error=str(error))
        else:
            elapsed_ms = int((time.monotonic() - self.created_at) * 1000)
            self._logger.debug("wait:done", f"Wait for {self.title} resolved", elapsed_ms=elapsed_ms)


class SelectorWaitTask(WaitTask):
    """Waits for a CSS selector to reach a presence or visibility state."""

    def __init__(
        self,
        frame: "Frame",
        selector: str,
        visibility: VisibilityMode,
        timeout_ms: Optional[int],
        survive_navigation: bool = False,
    ):
        self.selector = selector
        self.visibility = visibility
        suffix = {
            VisibilityMode.ANY: "",
            VisibilityMode.VISIBLE: " to be visible",
            VisibilityMode.HIDDEN: " to be hidden",
        }[visibility]
        super().__init__(
            frame,
            SELECTOR_PREDICATE,
            f'selector "{selector}"{suffix}',
            timeout_ms,
            selector,
            visibility is VisibilityMode.VISIBLE,
            visibility is VisibilityMode.HIDDEN,
            survive_navigation=survive_navigation,
        )

    def __await__(self):
        return self._element().__await__()

    async def _element(self) -> Optional["ElementHandle"]:
        handle = await self._future
        element = handle.as_element()
        if element is None:
            # Hidden-wait satisfied by an absent node
            await handle.dispose()
        return element
