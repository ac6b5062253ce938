"""Command-line interface for Remlic."""
