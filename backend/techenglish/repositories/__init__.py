"""Session-scoped persistence helpers for the progress engine."""
