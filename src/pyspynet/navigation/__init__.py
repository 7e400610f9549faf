"""Auth-gated navigation.

:mod:`pyspynet.navigation.state` holds the pure transition;
:mod:`pyspynet.navigation.guard` applies it against a router.
"""

from pyspynet.navigation.guard import NavigationGuard, Router, Scheduler
from pyspynet.navigation.state import GuardPhase, NavigationState, Redirect, evaluate, should_present_tutorial

__all__ = [
    "GuardPhase",
    "NavigationGuard",
    "NavigationState",
    "Redirect",
    "Router",
    "Scheduler",
    "evaluate",
    "should_present_tutorial",
]
