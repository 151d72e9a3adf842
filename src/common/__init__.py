"""Shared errors, logging and process helpers."""
