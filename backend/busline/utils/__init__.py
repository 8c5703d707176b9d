"""Utility helpers: configuration loading and logging setup."""
