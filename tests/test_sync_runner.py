"""Tests for the SyncRunner class."""

import json

import httpx
import pytest

from conftest import FakeGitHub, client_for
from jamstack_sync.clients import APIError
from jamstack_sync.exceptions import (
    ItemNotFound,
    NotPublishable,
    PathUnresolvable,
    PayloadTooLarge,
)
from schemas.sync_state import SyncState

DOCUMENT = "content/posts/2024-03-15-hello-world.md"


class TestSyncRun:
    """Tests for SyncRunner.run."""

    def test_publishes_document_and_images_in_one_commit(self, app, fake_github):
        parent = fake_github.ref

        outcome = app.sync_runner.run(42)

        assert set(fake_github.files) == {
            DOCUMENT,
            "static/images/42/featured.webp",
            "static/images/42/photo.webp",
        }
        assert fake_github.commits[fake_github.ref]["parents"] == [parent]
        assert fake_github.head_message == "Update: Hello World"
        assert outcome.file_path == DOCUMENT
        assert outcome.files == 3
        assert outcome.commit_reference == (
            f"https://github.com/owner/site/commit/{fake_github.ref}"
        )

    def test_document_references_new_image_paths(self, app, fake_github):
        app.sync_runner.run(42)

        document = fake_github.files[DOCUMENT].decode()
        assert "image: /images/42/featured.webp" in document
        assert "![A photo](/images/42/photo.webp)" in document
        assert "wp-content/uploads" not in document

    def test_repeat_run_is_idempotent(self, app, fake_github):
        """Syncing an unchanged item again lands at the same path with the same content."""
        first = app.sync_runner.run(42)
        files_after_first = fake_github.files
        first_ref = fake_github.ref

        second = app.sync_runner.run(42)

        assert second.file_path == first.file_path == DOCUMENT
        assert fake_github.files == files_after_first
        assert fake_github.commits[fake_github.ref]["parents"] == [first_ref]
        assert fake_github.request_count("POST", "/git/commits") == 2

    def test_records_path_and_commit_reference(self, app, fake_github):
        outcome = app.sync_runner.run(42)

        state = app.state_store.get(42)
        assert state.cached_file_path == DOCUMENT
        assert state.last_commit_reference == outcome.commit_reference

    def test_temp_files_removed(self, app, settings):
        app.sync_runner.run(42)

        assert not (settings.temp_dir / "42").exists()

    def test_draft_is_rejected_without_remote_calls(self, app, fake_github, mock_http_client):
        with pytest.raises(NotPublishable):
            app.sync_runner.run(7)

        assert fake_github.calls == []
        mock_http_client.get.assert_not_called()

    def test_missing_item(self, app):
        with pytest.raises(ItemNotFound):
            app.sync_runner.run(999)

    def test_external_images_left_alone(self, app, content_dir, sample_item_data, fake_github):
        """Images hosted elsewhere are neither downloaded nor rewritten."""
        external = "https://cdn.example.net/x.png"
        data = dict(
            sample_item_data,
            id=43,
            thumbnail_ref=None,
            body=f'<p>Look:</p><p><img src="{external}" alt="X"></p>',
        )
        (content_dir / "items" / "43.json").write_text(json.dumps(data))

        outcome = app.sync_runner.run(43)

        assert set(fake_github.files) == {outcome.file_path}
        assert f"![X]({external})" in fake_github.files[outcome.file_path].decode()

    def test_commit_failure_propagates_and_cleans_up(self, app, fake_github, settings):
        fake_github.failures[("POST", "/git/commits")] = 500

        with pytest.raises(APIError):
            app.sync_runner.run(42)

        assert fake_github.files == {}
        assert not (settings.temp_dir / "42").exists()
        assert app.state_store.get(42).cached_file_path is None

    def test_oversized_payload_warns(self, app, settings, fake_github, caplog):
        settings.payload_soft_limit = 10

        app.sync_runner.run(42)

        assert "soft limit" in caplog.text
        assert DOCUMENT in fake_github.files

    def test_oversized_payload_rejected_when_enforced(self, app, settings, fake_github):
        settings.payload_soft_limit = 10
        settings.enforce_payload_limit = True

        with pytest.raises(PayloadTooLarge):
            app.sync_runner.run(42)

        assert fake_github.request_count("PATCH") == 0


class TestSyncDelete:
    """Tests for SyncRunner.delete."""

    def test_removes_document_and_images(self, app, fake_github):
        app.sync_runner.run(42)

        outcome = app.sync_runner.delete(42)

        assert fake_github.files == {}
        assert outcome.deleted == [
            DOCUMENT,
            "static/images/42/featured.webp",
            "static/images/42/photo.webp",
        ]
        assert outcome.failed == []
        assert fake_github.head_message == "Delete image: photo.webp"

    def test_document_message_uses_title(self, settings, app):
        fake = FakeGitHub({DOCUMENT: b"doc"})
        app.sync_runner.client = client_for(settings, fake)

        app.sync_runner.delete(42)

        assert fake.head_message == "Delete: Hello World"

    def test_path_derived_and_cached_without_prior_sync(self, settings, app):
        fake = FakeGitHub({DOCUMENT: b"doc"})
        app.sync_runner.client = client_for(settings, fake)

        outcome = app.sync_runner.delete(42)

        assert outcome.deleted == [DOCUMENT]
        assert app.state_store.get(42).cached_file_path == DOCUMENT

    def test_deleted_item_uses_cached_path(self, settings, app, content_dir):
        """Items gone from the content source are removed via their cached path."""
        fake = FakeGitHub({"content/posts/old.md": b"doc"})
        app.sync_runner.client = client_for(settings, fake)
        app.state_store.save(SyncState(item_id=42, cached_file_path="content/posts/old.md"))
        (content_dir / "items" / "42.json").unlink()

        outcome = app.sync_runner.delete(42)

        assert outcome.deleted == ["content/posts/old.md"]
        assert fake.head_message == "Delete: Post #42"

    def test_unresolvable_path(self, app, fake_github):
        with pytest.raises(PathUnresolvable):
            app.sync_runner.delete(999)

        assert fake_github.calls == []

    def test_listing_error_still_reports_document(self, settings, app, caplog):
        fake = FakeGitHub({DOCUMENT: b"doc", "static/images/42/a.webp": b"a"})
        fake.failures[("GET", "/contents/static/images/42")] = 500
        app.sync_runner.client = client_for(settings, fake)

        outcome = app.sync_runner.delete(42)

        assert outcome.deleted == [DOCUMENT]
        assert "Could not list image directory" in caplog.text

    def test_image_failures_collected(self, settings, app):
        fake = FakeGitHub({
            DOCUMENT: b"doc",
            "static/images/42/a.webp": b"a",
            "static/images/42/b.webp": b"b",
        })
        fake.failures[("DELETE", "/contents/static/images/42/a.webp")] = 500
        app.sync_runner.client = client_for(settings, fake)

        outcome = app.sync_runner.delete(42)

        assert outcome.deleted == [DOCUMENT, "static/images/42/b.webp"]
        assert outcome.failed == ["static/images/42/a.webp"]
        assert set(fake.files) == {"static/images/42/a.webp"}

    def test_dropped_connection_skips_only_that_image(self, settings, app):
        fake = FakeGitHub({
            DOCUMENT: b"doc",
            "static/images/42/a.webp": b"a",
            "static/images/42/b.webp": b"b",
        })
        fake.failures[("DELETE", "/contents/static/images/42/a.webp")] = httpx.ReadError(
            "connection reset"
        )
        app.sync_runner.client = client_for(settings, fake)

        outcome = app.sync_runner.delete(42)

        assert outcome.deleted == [DOCUMENT, "static/images/42/b.webp"]
        assert outcome.failed == ["static/images/42/a.webp"]

    def test_document_failure_propagates(self, settings, app):
        fake = FakeGitHub({DOCUMENT: b"doc"})
        fake.failures[("DELETE", f"/contents/{DOCUMENT}")] = 500
        app.sync_runner.client = client_for(settings, fake)

        with pytest.raises(APIError):
            app.sync_runner.delete(42)
