"""Scheduler module."""

from .scheduler import (
    AsyncioScheduler,
    IScheduler,
    TimerCallback,
    TimerHandle,
    VirtualScheduler,
)

__all__ = [
    "AsyncioScheduler",
    "IScheduler",
    "TimerCallback",
    "TimerHandle",
    "VirtualScheduler",
]
