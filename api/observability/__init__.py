"""Tracing and logging setup."""
