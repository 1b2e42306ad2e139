"""Bot runtime: dispatch, permissions, hooks, scheduler and transport."""
