"""Shared helpers used across clubsync packages."""
