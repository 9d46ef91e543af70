"""Observability: metrics for advisory calls."""
