"""PocketPrompt: local prompt storage with optional envelope encryption."""
