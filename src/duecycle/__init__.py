"""
duecycle — recurring obligation engine.

Turns recurrence rules and loan parameters into concrete, non-duplicated
dated occurrences, and tracks budget utilization against them.
"""

__version__ = "0.1.0"
__all__ = ["ObligationEngine"]

from duecycle.service import ObligationEngine  # noqa: E402
