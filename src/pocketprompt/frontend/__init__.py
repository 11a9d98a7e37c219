"""Front ends of PocketPrompt."""
