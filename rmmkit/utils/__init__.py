"""Shared helpers: logging, command execution, validation."""
