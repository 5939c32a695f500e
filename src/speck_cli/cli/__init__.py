"""CLI package for speck."""
