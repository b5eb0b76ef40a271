"""
API client bootstrap for the community migration tool

Builds the handles the pipeline talks to: the MongoDB source database, named
Firebase apps (Firestore and Authentication) and the Cloud Storage JSON API
service wrapped with retry logic.
"""

import functools
import logging
import time
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from pymongo import MongoClient

from community_migrator.constants import HTTP_RATE_LIMIT
from community_migrator.utils.logging import log_with_context

STORAGE_SCOPES = ["https://www.googleapis.com/auth/devstorage.full_control"]

# Cache for service instances
_service_cache: Dict[str, Any] = {}


class RetryWrapper:
    """Wrapper that adds retry logic to the ``execute()`` calls of an API service."""

    def __init__(self, wrapped_obj, retry_config=None):
        self._wrapped_obj = wrapped_obj
        self._retry_config = retry_config or {}

    def __getattr__(self, name):
        attr = getattr(self._wrapped_obj, name)

        if not callable(attr):
            return attr

        if name == "execute":
            return self._wrap_execute(attr)

        # Keep wrapping down the chain: service.objects().get(...).execute()
        def wrapped_method(*args, **kwargs):
            result = attr(*args, **kwargs)
            if hasattr(result, "execute") or hasattr(result, "get"):
                return RetryWrapper(result, self._retry_config)
            return result

        return wrapped_method

    def _wrap_execute(self, execute_method):
        """Wrap an execute method with retry logic."""

        @functools.wraps(execute_method)
        def wrapper(*args, **kwargs):
            max_retries = self._retry_config.get("max_retries", 3)
            initial_delay = self._retry_config.get("retry_delay", 1)
            max_delay = 60
            backoff_factor = 2.0

            for attempt in range(max_retries + 1):
                try:
                    return execute_method(*args, **kwargs)
                except HttpError as e:
                    # Don't retry client errors (4xx) except rate limits (429)
                    if e.resp.status // 100 == 4 and e.resp.status != HTTP_RATE_LIMIT:
                        raise

                    log_with_context(
                        logging.WARNING,
                        f"Encountered {e.resp.status} {e.resp.reason}",
                        component="http",
                    )
                    if attempt >= max_retries:
                        log_with_context(
                            logging.ERROR,
                            f"Max retries reached. Last error: {e}",
                            component="http",
                        )
                        raise

                sleep_time = min(initial_delay * (backoff_factor**attempt), max_delay)
                log_with_context(
                    logging.INFO,
                    f"Retrying in {sleep_time:.1f} seconds...",
                    component="http",
                )
                time.sleep(sleep_time)

            raise RuntimeError("Exited retry loop unexpectedly.")

        return wrapper


def get_storage_service(
    creds_path: str,
    retry_config: Optional[Dict[str, Any]] = None,
) -> Any:
    """Get a retry-wrapped Cloud Storage JSON API service for a service account."""
    cache_key = f"{creds_path}:storage:v1"
    if cache_key in _service_cache:
        log_with_context(
            logging.DEBUG, "Using cached storage service", creds_path=creds_path
        )
        return _service_cache[cache_key]

    try:
        creds = service_account.Credentials.from_service_account_file(
            creds_path, scopes=STORAGE_SCOPES
        )
        service = build("storage", "v1", credentials=creds, cache_discovery=False)
    except Exception as e:
        log_with_context(
            logging.ERROR,
            f"Failed to create storage service: {e}",
            creds_path=creds_path,
        )
        raise

    wrapped_service = RetryWrapper(service, retry_config)
    _service_cache[cache_key] = wrapped_service
    return wrapped_service


def get_firebase_app(
    creds_path: str, app_name: str, storage_bucket: Optional[str] = None
) -> firebase_admin.App:
    """Get (or initialise) a named Firebase app for a service account file."""
    try:
        return firebase_admin.get_app(app_name)
    except ValueError:
        pass

    options = {"storageBucket": storage_bucket} if storage_bucket else None
    app = firebase_admin.initialize_app(
        credentials.Certificate(creds_path), options, name=app_name
    )
    log_with_context(
        logging.DEBUG,
        f"Initialised Firebase app '{app_name}'",
        project_id=app.project_id,
    )
    return app


def get_firestore_client(app: firebase_admin.App) -> Any:
    """Get the Firestore client bound to a Firebase app."""
    return firestore.client(app)


def get_mongo_database(uri: str, database: str) -> Any:
    """Connect to the MongoDB source store and return the database handle."""
    client = MongoClient(uri, tz_aware=True)
    log_with_context(logging.DEBUG, f"Connected to MongoDB database '{database}'")
    return client[database]
