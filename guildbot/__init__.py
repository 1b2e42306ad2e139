"""guildbot -- chat bot core with commands, permissions, hooks and tasks."""
