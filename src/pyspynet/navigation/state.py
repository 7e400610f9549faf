"""Navigation state and the pure redirect transition.

All redirect decisions are made by :func:`evaluate`, which maps a
:class:`NavigationState` to the next state and at most one
:class:`Redirect`. The single-flight latch (``has_pending_redirect``) is
part of the state so duplicate-redirect suppression can be checked
without any scheduler or router.
"""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from pyspynet._constants import (
    ADMIN_SEGMENT,
    AUTH_ROUTE,
    AUTH_SEGMENT,
    HOME_ROUTE,
    WEB_AUTH_ROUTE,
)

# Web builds are served under a prefix (``/app/auth``), so the root
# segment alone cannot tell that the auth screen is showing.
_AUTH_PATHNAME = re.compile(r"/auth/?(\?|$)")


class GuardPhase(StrEnum):
    BOOTSTRAPPING = "bootstrapping"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class NavigationState(BaseModel):
    """Everything the guard observes, plus its redirect latch.

    ``pathname`` is only set on web, where it also decides the auth
    redirect target.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    is_authenticated: bool = False
    is_loading: bool = True
    is_bootstrapped: bool = False
    router_ready: bool = False
    root_segment: str = ""
    pathname: str | None = None
    tutorial_completed: bool = False
    has_pending_redirect: bool = False

    @property
    def phase(self) -> GuardPhase:
        if self.is_loading or not self.is_bootstrapped:
            return GuardPhase.BOOTSTRAPPING
        if self.is_authenticated:
            return GuardPhase.AUTHENTICATED
        return GuardPhase.UNAUTHENTICATED

    @property
    def in_auth(self) -> bool:
        if self.root_segment == AUTH_SEGMENT:
            return True
        return self.pathname is not None and _AUTH_PATHNAME.search(self.pathname) is not None

    @property
    def in_admin(self) -> bool:
        return self.root_segment == ADMIN_SEGMENT


class Redirect(BaseModel):
    """A replace-navigation command for the router."""

    model_config = ConfigDict(frozen=True)

    route: str
    reason: str = ""


def evaluate(state: NavigationState) -> tuple[NavigationState, Redirect | None]:
    """Compute the next state and the redirect to issue, if any."""
    if state.phase is GuardPhase.BOOTSTRAPPING or not state.router_ready:
        return state, None

    authenticated = state.is_authenticated
    in_auth = state.in_auth
    in_admin = state.in_admin

    if not authenticated and not in_auth and not in_admin:
        if state.has_pending_redirect:
            return state, None
        route = WEB_AUTH_ROUTE if state.pathname is not None else AUTH_ROUTE
        return state.model_copy(update={"has_pending_redirect": True}), Redirect(
            route=route, reason="unauthenticated"
        )

    if authenticated and in_auth:
        if state.has_pending_redirect:
            return state, None
        return state.model_copy(update={"has_pending_redirect": True}), Redirect(
            route=HOME_ROUTE, reason="authenticated"
        )

    settled = (authenticated and not in_auth and not in_admin) or (not authenticated and in_auth)
    if settled and state.has_pending_redirect:
        return state.model_copy(update={"has_pending_redirect": False}), None
    return state, None


def should_present_tutorial(state: NavigationState) -> bool:
    """Whether the onboarding tutorial is due for *state*."""
    return state.phase is GuardPhase.AUTHENTICATED and not state.tutorial_completed
