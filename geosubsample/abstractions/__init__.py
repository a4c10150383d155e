"""Abstractions layer: typed records shared by every component."""
