"""Test helpers for approval audit tests.

Helpers:
    FakeClock: Controllable clock for deterministic tests
    actors: Actors registered in the default authority table fixture

Usage:
    from tests.helpers import FakeClock
    from tests.helpers.actors import SENIOR_MANAGER
"""

from tests.helpers.fake_clock import FakeClock

__all__ = ["FakeClock"]
