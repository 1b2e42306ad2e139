"""Background task scheduling."""

from .engine import Task, TaskContext, TaskExecutor, TaskScheduler, TaskState
from .schedules import AtSchedule, CronSchedule, IntervalSchedule, Schedule, ZonedSchedule

__all__ = [
    "AtSchedule",
    "CronSchedule",
    "IntervalSchedule",
    "Schedule",
    "Task",
    "TaskContext",
    "TaskExecutor",
    "TaskScheduler",
    "TaskState",
    "ZonedSchedule",
]
