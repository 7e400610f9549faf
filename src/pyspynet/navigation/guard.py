"""Navigation guard driving a router from observed auth/location state."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from functools import partial
from typing import Any, Protocol

from pyspynet._constants import TUTORIAL_DELAY
from pyspynet.navigation.state import NavigationState, Redirect, evaluate, should_present_tutorial

_logger = logging.getLogger(__name__)


class Handle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Deferred-callback interface. An asyncio event loop satisfies it."""

    def call_soon(self, callback: Callable[..., Any]) -> Handle:
        ...

    def call_later(self, delay: float, callback: Callable[..., Any]) -> Handle:
        ...


class Router(Protocol):
    """Minimal router surface: replace the current location with *route*.

    ``replace`` may return an awaitable; it is run fire-and-forget.
    """

    def replace(self, route: str) -> Any:
        ...


class NavigationGuard:
    """Keep protected screens behind authentication.

    Feed every change of auth or router state through :meth:`observe`.
    At most one redirect is in flight at a time: the latch is set when a
    redirect is scheduled and cleared once the observed location matches
    the auth state. Redirects run on the next scheduler tick.

    Once authenticated with onboarding unfinished, *present_tutorial* is
    called after *tutorial_delay* seconds, at most once per authenticated
    session. :meth:`close_tutorial` marks onboarding complete.

    Without an explicit *scheduler* the running event loop is used, so
    the guard must then be driven from inside that loop.
    """

    def __init__(
        self,
        router: Router,
        *,
        scheduler: Scheduler | None = None,
        present_tutorial: Callable[[], Any] | None = None,
        on_tutorial_completed: Callable[[], Any] | None = None,
        tutorial_delay: float = TUTORIAL_DELAY,
        initial: NavigationState | None = None,
    ) -> None:
        self._router = router
        self._scheduler = scheduler
        self._present_tutorial = present_tutorial
        self._on_tutorial_completed = on_tutorial_completed
        self._tutorial_delay = tutorial_delay
        self._state = initial or NavigationState()
        self._redirect_handle: Handle | None = None
        self._inflight: Redirect | None = None
        self._tutorial_handle: Handle | None = None
        self._tutorial_presented = False
        self._tasks: set[asyncio.Future[Any]] = set()
        self.tutorial_visible = False

    @property
    def state(self) -> NavigationState:
        return self._state

    @property
    def redirect_pending(self) -> bool:
        return self._state.has_pending_redirect

    def _get_scheduler(self) -> Scheduler:
        if self._scheduler is not None:
            return self._scheduler
        return asyncio.get_running_loop()

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def observe(self, **changes: Any) -> Redirect | None:
        """Apply *changes* to the observed state and re-evaluate.

        Accepts any :class:`NavigationState` field except the latch.
        Returns the redirect scheduled by this evaluation, if any.
        """
        if "has_pending_redirect" in changes:
            raise TypeError("has_pending_redirect is owned by the guard")
        state = NavigationState.model_validate({**self._state.model_dump(), **changes})
        return self._evaluate(state)

    def evaluate(self) -> Redirect | None:
        """Re-run the transition on the current state."""
        return self._evaluate(self._state)

    def _evaluate(self, state: NavigationState) -> Redirect | None:
        if not state.is_authenticated:
            self._tutorial_presented = False

        self._state, redirect = evaluate(state)
        if redirect is not None:
            _logger.info(
                "Redirect -> %s (segment=%r, authenticated=%s)",
                redirect.route,
                state.root_segment,
                state.is_authenticated,
            )
            self._inflight = redirect
            self._redirect_handle = self._get_scheduler().call_soon(partial(self._issue, redirect))

        self._update_tutorial()
        return redirect

    # ------------------------------------------------------------------
    # Redirect execution
    # ------------------------------------------------------------------

    def _issue(self, redirect: Redirect) -> None:
        self._redirect_handle = None
        try:
            result = self._router.replace(redirect.route)
        except Exception:
            _logger.warning("Navigation to %s failed", redirect.route, exc_info=True)
            self._release_latch(redirect)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(partial(self._on_redirect_done, redirect))

    def _on_redirect_done(self, redirect: Redirect, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self._release_latch(redirect)
            return
        exc = task.exception()
        if exc is not None:
            _logger.warning("Navigation to %s failed", redirect.route, exc_info=exc)
            self._release_latch(redirect)

    def _release_latch(self, redirect: Redirect) -> None:
        # Only the redirect still in flight owns the latch.
        if redirect is not self._inflight:
            return
        self._inflight = None
        self._state = self._state.model_copy(update={"has_pending_redirect": False})

    # ------------------------------------------------------------------
    # Onboarding tutorial
    # ------------------------------------------------------------------

    def _update_tutorial(self) -> None:
        due = should_present_tutorial(self._state) and not self._tutorial_presented
        if due:
            if self._tutorial_handle is None:
                self._tutorial_handle = self._get_scheduler().call_later(
                    self._tutorial_delay, self._fire_tutorial
                )
        elif self._tutorial_handle is not None:
            self._tutorial_handle.cancel()
            self._tutorial_handle = None

    def _fire_tutorial(self) -> None:
        self._tutorial_handle = None
        if self._tutorial_presented or not should_present_tutorial(self._state):
            return
        self._tutorial_presented = True
        self.tutorial_visible = True
        if self._present_tutorial is None:
            return
        try:
            self._run_callback(self._present_tutorial())
        except Exception:
            _logger.warning("Presenting tutorial failed", exc_info=True)

    def close_tutorial(self) -> None:
        """Hide the tutorial and mark onboarding complete."""
        self.tutorial_visible = False
        self._state = self._state.model_copy(update={"tutorial_completed": True})
        if self._tutorial_handle is not None:
            self._tutorial_handle.cancel()
            self._tutorial_handle = None
        if self._on_tutorial_completed is None:
            return
        try:
            self._run_callback(self._on_tutorial_completed())
        except Exception:
            _logger.warning("Recording tutorial completion failed", exc_info=True)

    def _run_callback(self, result: Any) -> None:
        if not inspect.isawaitable(result):
            return
        task = asyncio.ensure_future(result)
        self._tasks.add(task)
        task.add_done_callback(self._on_callback_done)

    def _on_callback_done(self, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            _logger.warning("Guard callback failed", exc_info=task.exception())

    def close(self) -> None:
        """Cancel scheduled redirects and tutorial timers."""
        for handle in (self._redirect_handle, self._tutorial_handle):
            if handle is not None:
                handle.cancel()
        self._redirect_handle = None
        self._tutorial_handle = None
