"""Custom exception hierarchy for the community migration tool."""


class MigratorError(Exception):
    """Base exception for all migration-related errors."""


class ConfigError(MigratorError):
    """Raised when configuration is invalid or missing."""


class CommunityNotFoundError(MigratorError):
    """Raised when the requested community does not exist in the source store."""


class BundleError(MigratorError):
    """Raised when an export bundle is unreadable or structurally invalid."""


class IdentityExistsError(MigratorError):
    """Raised by the identity provider when an account already uses the email."""

    def __init__(self, email: str) -> None:
        super().__init__(f"An account already exists for {email}")
        self.email = email


class IdentityConflictError(MigratorError):
    """Raised when distinct source users collapse onto one target identity."""


class ImportFailedError(MigratorError):
    """Raised when an import step fails and the run has to be aborted."""
