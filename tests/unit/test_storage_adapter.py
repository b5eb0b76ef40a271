"""Unit tests for the StorageAdapter."""

from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from community_migrator.services.storage_adapter import StorageAdapter


def _make_http_error(status: int) -> HttpError:
    resp = httplib2.Response({"status": status})
    resp.reason = "error"
    return HttpError(resp, b"error body")


@pytest.fixture()
def mock_service():
    """Return a deeply-mocked Cloud Storage API service."""
    return MagicMock(name="storage_service")


@pytest.fixture()
def adapter(mock_service):
    return StorageAdapter(mock_service)


class TestGetObject:
    def test_returns_metadata(self, adapter, mock_service):
        mock_service.objects().get().execute.return_value = {"contentType": "image/png"}

        assert adapter.get_object("bkt", "a/b.png") == {"contentType": "image/png"}
        kwargs = mock_service.objects().get.call_args.kwargs
        assert kwargs == {"bucket": "bkt", "object": "a/b.png"}

    def test_not_found_returns_none(self, adapter, mock_service):
        mock_service.objects().get().execute.side_effect = _make_http_error(404)
        assert adapter.get_object("bkt", "a/b.png") is None

    def test_other_errors_propagate(self, adapter, mock_service):
        mock_service.objects().get().execute.side_effect = _make_http_error(403)
        with pytest.raises(HttpError):
            adapter.get_object("bkt", "a/b.png")


class TestTransfer:
    def test_download(self, adapter, mock_service):
        mock_service.objects().get_media().execute.return_value = b"bytes"
        assert adapter.download("bkt", "a.png") == b"bytes"

    def test_upload_sets_name_and_content_type(self, adapter, mock_service):
        adapter.upload("bkt", "a/b.png", b"bytes", "image/png")

        kwargs = mock_service.objects().insert.call_args.kwargs
        assert kwargs["bucket"] == "bkt"
        assert kwargs["name"] == "a/b.png"
        assert kwargs["body"] == {"name": "a/b.png", "contentType": "image/png"}
        assert kwargs["media_body"].mimetype() == "image/png"

    def test_make_public_grants_all_users_read(self, adapter, mock_service):
        adapter.make_public("bkt", "a/b.png")

        kwargs = mock_service.objectAccessControls().insert.call_args.kwargs
        assert kwargs["object"] == "a/b.png"
        assert kwargs["body"] == {"entity": "allUsers", "role": "READER"}


def test_public_url():
    assert (
        StorageAdapter.public_url("bkt", "a/b.png")
        == "https://storage.googleapis.com/bkt/a/b.png"
    )
