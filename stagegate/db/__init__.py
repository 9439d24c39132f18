"""Database layer for stagegate."""
