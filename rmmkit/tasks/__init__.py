"""Startup task registration."""

from .scheduler import ScheduledTask, TaskRegistrar

__all__ = ["ScheduledTask", "TaskRegistrar"]
