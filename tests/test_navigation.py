from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from pyspynet.navigation.guard import NavigationGuard
from pyspynet.navigation.state import GuardPhase, NavigationState, Redirect, evaluate


@dataclass
class _Timer:
    due: float
    callback: Callable[[], Any]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualScheduler:
    """Virtual clock: callbacks only run when the test advances time."""

    now: float = 0.0
    timers: list[_Timer] = field(default_factory=list)

    def call_soon(self, callback: Callable[[], Any]) -> _Timer:
        return self.call_later(0.0, callback)

    def call_later(self, delay: float, callback: Callable[[], Any]) -> _Timer:
        timer = _Timer(due=self.now + delay, callback=callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds: float = 0.0) -> None:
        self.now += seconds
        while True:
            ready = [t for t in self.timers if not t.cancelled and t.due <= self.now]
            if not ready:
                return
            timer = min(ready, key=lambda t: t.due)
            self.timers.remove(timer)
            timer.callback()


@dataclass
class FakeRouter:
    routes: list[str] = field(default_factory=list)
    fail: bool = False

    def replace(self, route: str) -> None:
        self.routes.append(route)
        if self.fail:
            raise RuntimeError("navigator not mounted")


def _ready(**overrides: Any) -> dict[str, Any]:
    values: dict[str, Any] = {
        "is_loading": False,
        "is_bootstrapped": True,
        "router_ready": True,
        "tutorial_completed": True,
    }
    values.update(overrides)
    return values


# ----------------------------------------------------------------------
# Pure transition
# ----------------------------------------------------------------------


def test_bootstrapping_or_unready_router_issues_nothing() -> None:
    for state in (
        NavigationState(is_loading=True, is_bootstrapped=True, router_ready=True, root_segment="(tabs)"),
        NavigationState(is_loading=False, is_bootstrapped=False, router_ready=True, root_segment="(tabs)"),
        NavigationState(is_loading=False, is_bootstrapped=True, router_ready=False, root_segment="(tabs)"),
    ):
        assert evaluate(state) == (state, None)


def test_unauthenticated_outside_auth_latches_and_redirects() -> None:
    state = NavigationState(**_ready(root_segment="(tabs)"))

    next_state, redirect = evaluate(state)

    assert redirect == Redirect(route="/auth", reason="unauthenticated")
    assert next_state.has_pending_redirect
    assert evaluate(next_state) == (next_state, None)


def test_admin_area_is_reachable_without_auth() -> None:
    state = NavigationState(**_ready(root_segment="admin"))

    assert evaluate(state) == (state, None)


def test_web_pathname_counts_as_auth_area() -> None:
    state = NavigationState(**_ready(root_segment="app", pathname="/app/auth"))

    assert state.in_auth
    assert evaluate(state)[1] is None


def test_web_redirect_targets_prefixed_auth_route() -> None:
    state = NavigationState(**_ready(root_segment="app", pathname="/app/network"))

    _, redirect = evaluate(state)

    assert redirect is not None
    assert redirect.route == "/app/auth"


def test_settled_state_clears_latch() -> None:
    latched = NavigationState(**_ready(is_authenticated=True, root_segment="(tabs)"), has_pending_redirect=True)

    next_state, redirect = evaluate(latched)

    assert redirect is None
    assert not next_state.has_pending_redirect


def test_phase() -> None:
    assert NavigationState().phase is GuardPhase.BOOTSTRAPPING
    assert NavigationState(**_ready()).phase is GuardPhase.UNAUTHENTICATED
    assert NavigationState(**_ready(is_authenticated=True)).phase is GuardPhase.AUTHENTICATED


# ----------------------------------------------------------------------
# Guard
# ----------------------------------------------------------------------


def test_repeated_evaluation_issues_one_redirect_until_auth_reached() -> None:
    scheduler = ManualScheduler()
    router = FakeRouter()
    guard = NavigationGuard(router, scheduler=scheduler)

    guard.observe(**_ready(is_authenticated=False, root_segment="home"))
    for _ in range(5):
        guard.evaluate()
        guard.observe(root_segment="home")
    assert router.routes == []  # deferred to the next tick

    scheduler.advance()
    assert router.routes == ["/auth"]

    guard.observe(root_segment="auth")
    assert not guard.redirect_pending
    scheduler.advance()
    assert router.routes == ["/auth"]


def test_authenticated_in_auth_redirects_home_once() -> None:
    scheduler = ManualScheduler()
    router = FakeRouter()
    guard = NavigationGuard(router, scheduler=scheduler)

    guard.observe(**_ready(is_authenticated=True, root_segment="auth"))
    guard.observe(root_segment="auth")
    scheduler.advance()
    assert router.routes == ["/(tabs)"]

    guard.observe(root_segment="home")
    scheduler.advance()
    assert router.routes == ["/(tabs)"]
    assert not guard.redirect_pending


def test_no_redirect_until_router_ready() -> None:
    scheduler = ManualScheduler()
    router = FakeRouter()
    guard = NavigationGuard(router, scheduler=scheduler)

    guard.observe(**_ready(router_ready=False, root_segment="(tabs)"))
    scheduler.advance(10)
    assert router.routes == []

    guard.observe(router_ready=True)
    scheduler.advance()
    assert router.routes == ["/auth"]


def test_logout_after_settling_redirects_again() -> None:
    scheduler = ManualScheduler()
    router = FakeRouter()
    guard = NavigationGuard(router, scheduler=scheduler)

    guard.observe(**_ready(is_authenticated=True, root_segment="auth"))
    scheduler.advance()
    guard.observe(root_segment="(tabs)")

    guard.observe(is_authenticated=False)
    scheduler.advance()

    assert router.routes == ["/(tabs)", "/auth"]


def test_failed_navigation_releases_latch() -> None:
    scheduler = ManualScheduler()
    router = FakeRouter(fail=True)
    guard = NavigationGuard(router, scheduler=scheduler)

    guard.observe(**_ready(root_segment="(tabs)"))
    scheduler.advance()
    assert not guard.redirect_pending

    router.fail = False
    guard.evaluate()
    scheduler.advance()
    assert router.routes == ["/auth", "/auth"]


def test_latch_is_owned_by_guard() -> None:
    guard = NavigationGuard(FakeRouter(), scheduler=ManualScheduler())

    with pytest.raises(TypeError):
        guard.observe(has_pending_redirect=False)


@pytest.mark.asyncio
async def test_async_router_runs_on_event_loop() -> None:
    routes: list[str] = []

    class _AsyncRouter:
        async def replace(self, route: str) -> None:
            routes.append(route)

    guard = NavigationGuard(_AsyncRouter())
    guard.observe(**_ready(root_segment="(tabs)"))

    await asyncio.sleep(0.01)

    assert routes == ["/auth"]


@pytest.mark.asyncio
async def test_late_failure_of_superseded_redirect_keeps_current_latch() -> None:
    class _PendingRouter:
        def __init__(self) -> None:
            self.routes: list[str] = []
            self.pending: list[asyncio.Future[None]] = []

        def replace(self, route: str) -> asyncio.Future[None]:
            self.routes.append(route)
            future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            self.pending.append(future)
            return future

    scheduler = ManualScheduler()
    router = _PendingRouter()
    guard = NavigationGuard(router, scheduler=scheduler)

    guard.observe(**_ready(root_segment="(tabs)"))
    scheduler.advance()
    guard.observe(root_segment="auth")
    assert not guard.redirect_pending

    guard.observe(is_authenticated=True)
    scheduler.advance()
    assert guard.redirect_pending

    router.pending[0].set_exception(RuntimeError("navigator not mounted"))
    await asyncio.sleep(0)
    assert guard.redirect_pending

    guard.observe(root_segment="auth")
    scheduler.advance()
    router.pending[1].set_result(None)
    await asyncio.sleep(0)

    assert router.routes == ["/auth", "/(tabs)"]


# ----------------------------------------------------------------------
# Tutorial
# ----------------------------------------------------------------------


def _tutorial_guard() -> tuple[NavigationGuard, ManualScheduler, list[str]]:
    scheduler = ManualScheduler()
    events: list[str] = []
    guard = NavigationGuard(
        FakeRouter(),
        scheduler=scheduler,
        present_tutorial=lambda: events.append("shown"),
        on_tutorial_completed=lambda: events.append("completed"),
    )
    return guard, scheduler, events


def test_tutorial_shown_once_after_delay() -> None:
    guard, scheduler, events = _tutorial_guard()

    guard.observe(**_ready(is_authenticated=True, root_segment="(tabs)", tutorial_completed=False))
    scheduler.advance(0.3)
    assert events == []

    scheduler.advance(0.3)
    assert events == ["shown"]
    assert guard.tutorial_visible

    guard.observe(root_segment="network")
    guard.evaluate()
    scheduler.advance(5)
    assert events == ["shown"]


def test_tutorial_never_shown_when_completed() -> None:
    guard, scheduler, events = _tutorial_guard()

    guard.observe(**_ready(is_authenticated=True, root_segment="(tabs)", tutorial_completed=True))
    scheduler.advance(5)

    assert events == []


def test_closing_tutorial_marks_completion() -> None:
    guard, scheduler, events = _tutorial_guard()

    guard.observe(**_ready(is_authenticated=True, root_segment="(tabs)", tutorial_completed=False))
    scheduler.advance(1)
    guard.close_tutorial()

    assert events == ["shown", "completed"]
    assert guard.state.tutorial_completed
    assert not guard.tutorial_visible

    guard.observe(is_authenticated=False, root_segment="auth")
    guard.observe(is_authenticated=True, root_segment="(tabs)")
    scheduler.advance(5)
    assert events == ["shown", "completed"]


def test_pending_tutorial_cancelled_on_logout() -> None:
    guard, scheduler, events = _tutorial_guard()

    guard.observe(**_ready(is_authenticated=True, root_segment="(tabs)", tutorial_completed=False))
    scheduler.advance(0.2)
    guard.observe(is_authenticated=False)
    scheduler.advance(1)

    assert events == []


def test_tutorial_shown_again_for_new_session_if_not_completed() -> None:
    guard, scheduler, events = _tutorial_guard()

    guard.observe(**_ready(is_authenticated=True, root_segment="(tabs)", tutorial_completed=False))
    scheduler.advance(1)
    guard.observe(is_authenticated=False, root_segment="auth")
    guard.observe(is_authenticated=True, root_segment="(tabs)")
    scheduler.advance(1)

    assert events == ["shown", "shown"]


def test_tutorial_waits_for_bootstrap() -> None:
    guard, scheduler, events = _tutorial_guard()

    guard.observe(is_authenticated=True, tutorial_completed=False, is_loading=True)
    scheduler.advance(1)
    assert events == []

    guard.observe(is_loading=False, is_bootstrapped=True)
    scheduler.advance(1)
    assert events == ["shown"]
