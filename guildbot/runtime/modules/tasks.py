"""``tasks`` command -- lists scheduled background tasks."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..messaging.commands import InvocationContext
    from ..scheduler import TaskScheduler
    from ..wiring import BotRuntime

PERMISSION_VIEW = "tasks.view"


def format_tasks(scheduler: TaskScheduler) -> str:
    tasks = scheduler.list_tasks()
    if not tasks:
        return "No scheduled tasks."
    lines = [f"**Scheduled tasks ({len(tasks)})**"]
    for task in tasks:
        next_run = task.next_run.strftime("%Y-%m-%d %H:%M:%S UTC") if task.next_run else "never"
        line = f"- {task.name} [{task.state.value}] {task.schedule.describe()}, next: {next_run}"
        if task.last_error:
            line += f" (last error: {task.last_error})"
        lines.append(line)
    return "\n".join(lines)


class TasksModule:
    name = "tasks"

    def setup(self, runtime: BotRuntime) -> None:
        scheduler = runtime.scheduler

        async def cmd_tasks(ctx: InvocationContext, args: list[str]) -> str:
            return format_tasks(scheduler)

        runtime.registry.add(
            None, "tasks", cmd_tasks,
            description="List scheduled tasks and their next run.",
            permissions=[PERMISSION_VIEW],
            module=self.name,
        )
