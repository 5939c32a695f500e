"""Core configuration helpers."""
