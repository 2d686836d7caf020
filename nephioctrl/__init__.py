"""Reconcilers and helpers for package revision approval, cluster bootstrap and git repositories."""

__version__ = "0.1.0"