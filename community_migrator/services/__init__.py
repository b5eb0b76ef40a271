"""Service integrations: source and target stores, identity, storage and media."""

__all__ = [
    "document_store",
    "dry_run",
    "identity",
    "identity_provider",
    "media",
    "source_store",
    "storage_adapter",
]
