"""Typed adapter for Firebase Authentication.

Converts the Firebase Admin SDK's error types into the two outcomes the
reconciler cares about: "no such account" (``None``) and "email already
registered" (:class:`IdentityExistsError`).
"""

from __future__ import annotations

from typing import Any

from firebase_admin import auth

from community_migrator.exceptions import IdentityExistsError


class IdentityProvider:
    """Thin typed wrapper around ``firebase_admin.auth`` for one Firebase app."""

    def __init__(self, app: Any = None) -> None:
        self._app = app

    def get_uid_by_email(self, email: str) -> str | None:
        """Return the uid of the account registered with ``email``, if any."""
        try:
            record = auth.get_user_by_email(email, app=self._app)
        except auth.UserNotFoundError:
            return None
        return record.uid

    def create_account(
        self,
        email: str,
        password: str,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> str:
        """Create an account and return its uid.

        Raises:
            IdentityExistsError: If an account already uses ``email``.
        """
        try:
            record = auth.create_user(
                email=email,
                password=password,
                display_name=display_name or None,
                photo_url=photo_url or None,
                app=self._app,
            )
        except auth.EmailAlreadyExistsError as e:
            raise IdentityExistsError(email) from e
        return record.uid
