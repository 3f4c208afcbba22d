"""CLI for fa-audit."""
