"""Command line interface for smartfill."""
