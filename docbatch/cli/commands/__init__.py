"""CLI commands for docbatch."""
