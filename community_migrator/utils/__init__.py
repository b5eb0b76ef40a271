"""Shared utilities for API client bootstrap, logging and batching."""

__all__ = [
    "api",
    "batching",
    "logging",
]
