"""Facades over the marketplace contracts."""
