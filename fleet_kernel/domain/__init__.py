"""
Pure domain layer.

Objects here have NO dependencies on the ORM, the database, or I/O.
"""

from fleet_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
]
