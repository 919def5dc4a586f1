"""Shared utilities: configuration, logging, console and system helpers."""
