"""Elevates dashboard backend."""
