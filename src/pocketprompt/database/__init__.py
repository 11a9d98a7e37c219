"""SQLite persistence for prompts and tags."""
