"""Core data models: targets, results and errors."""
