"""Core migration logic: configuration, bundle codec, export and import orchestration."""

__all__ = [
    "bundle",
    "config",
    "context",
    "exporter",
    "importer",
    "migrator",
    "state",
]
