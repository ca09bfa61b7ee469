"""Command implementations used by ``monorelease.cli.main``."""
