"""Core models, configuration and the prompt store."""
