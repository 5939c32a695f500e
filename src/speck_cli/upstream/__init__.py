"""Upstream sync: transformation history and the transform-upstream workflow."""
