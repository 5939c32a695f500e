"""CLI command modules for speck."""

from .transform import app as transform_app

__all__ = ["transform_app"]
