"""Pytest fixtures for jamstack-sync tests."""

import base64
import itertools
import json
from io import BytesIO
from unittest.mock import MagicMock
from urllib.parse import unquote

import httpx
import pytest
from PIL import Image

from jamstack_sync.app import Application
from jamstack_sync.clients import GitHubClient
from jamstack_sync.content import JsonContentSource
from jamstack_sync.media import EncoderBackend, EncoderChain, MediaProcessor
from schemas.settings import SyncSettings

REPO = "owner/site"
BRANCH = "main"


def make_response(status_code: int, body=None, url: str = "", headers: dict | None = None):
    """Build a MagicMock standing in for an httpx.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.is_success = 200 <= status_code < 300
    response.url = f"https://api.github.test{url}"
    response.headers = httpx.Headers(headers or {})
    response.json.return_value = body if body is not None else {}
    response.content = b""
    return response


class FakeGitHub:
    """In-memory Git repository answering GitHub REST API requests.

    Used as the side_effect of a mocked httpx.Client.request. Supports the
    contents API, the Git data API (blobs, trees, commits, refs) with
    fast-forward checks, and failure injection.

    Attributes:
        calls: (method, path) of every request received
        failures: {(method, path fragment): status or exception} answered (or
                  raised) instead of the real route
        concurrent_pushes: Number of times another writer advances the branch
                           just before a ref update
        push_permission: Value reported under permissions.push
    """

    def __init__(self, files: dict[str, bytes] | None = None):
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], int | Exception] = {}
        self.concurrent_pushes = 0
        self.push_permission = True
        self.blobs: dict[str, bytes] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.commits: dict[str, dict] = {}
        self._ids = itertools.count(1)

        tree = {path: self._blob(content) for path, content in (files or {}).items()}
        self.ref = self._commit(self._tree(tree), [], "Initial commit")

    # Repository model

    def _sha(self) -> str:
        return f"{next(self._ids):040x}"

    def _blob(self, content: bytes) -> str:
        sha = self._sha()
        self.blobs[sha] = content
        return sha

    def _tree(self, entries: dict[str, str]) -> str:
        sha = self._sha()
        self.trees[sha] = dict(entries)
        return sha

    def _commit(self, tree_sha: str, parents: list[str], message: str) -> str:
        sha = self._sha()
        self.commits[sha] = {"tree": tree_sha, "parents": parents, "message": message}
        return sha

    def head_entries(self) -> dict[str, str]:
        return self.trees[self.commits[self.ref]["tree"]]

    @property
    def files(self) -> dict[str, bytes]:
        """Files on the branch tip."""
        return {path: self.blobs[sha] for path, sha in self.head_entries().items()}

    @property
    def head_message(self) -> str:
        return self.commits[self.ref]["message"]

    def push(self, files: dict[str, bytes], message: str = "Concurrent push") -> None:
        """Advance the branch as another writer would."""
        entries = dict(self.head_entries())
        for path, content in files.items():
            entries[path] = self._blob(content)
        self.ref = self._commit(self._tree(entries), [self.ref], message)

    def request_count(self, method: str, fragment: str = "") -> int:
        return sum(1 for m, p in self.calls if m == method and fragment in p)

    # HTTP surface

    def __call__(self, method: str, url: str, **kwargs):
        self.calls.append((method, url))
        for (fail_method, fragment), status in self.failures.items():
            if fail_method == method and fragment in url:
                if isinstance(status, Exception):
                    raise status
                return make_response(status, {"message": "Injected failure"}, url)

        body = kwargs.get("json") or {}
        prefix = f"/repos/{REPO}"

        if url == "/rate_limit":
            return make_response(200, {
                "resources": {"core": {"limit": 5000, "remaining": 4990, "reset": 1700000000}},
                "rate": {"limit": 5000, "remaining": 4990, "reset": 1700000000},
            }, url)
        if url == prefix and method == "GET":
            return make_response(200, {
                "full_name": REPO,
                "permissions": {"push": self.push_permission},
            }, url)
        if url == f"{prefix}/git/ref/heads/{BRANCH}":
            return make_response(200, {"object": {"sha": self.ref}}, url)
        if url.startswith(f"{prefix}/git/commits/") and method == "GET":
            sha = url.rsplit("/", 1)[1]
            return make_response(200, {"sha": sha, "tree": {"sha": self.commits[sha]["tree"]}}, url)
        if url == f"{prefix}/git/blobs":
            return make_response(201, {"sha": self._blob(base64.b64decode(body["content"]))}, url)
        if url == f"{prefix}/git/trees":
            entries = dict(self.trees[body["base_tree"]])
            for entry in body["tree"]:
                entries[entry["path"]] = entry["sha"]
            return make_response(201, {"sha": self._tree(entries)}, url)
        if url == f"{prefix}/git/commits" and method == "POST":
            sha = self._commit(body["tree"], body["parents"], body["message"])
            return make_response(201, {"sha": sha}, url)
        if url == f"{prefix}/git/refs/heads/{BRANCH}" and method == "PATCH":
            return self._update_ref(url, body)
        if url.startswith(f"{prefix}/contents/"):
            path = unquote(url[len(f"{prefix}/contents/"):])
            return self._contents(method, url, path, body)

        return make_response(404, {"message": "Not Found"}, url)

    def _update_ref(self, url: str, body: dict):
        if self.concurrent_pushes > 0:
            self.concurrent_pushes -= 1
            self.push({"concurrent.txt": f"push {self._sha()}".encode()})

        if self.commits[body["sha"]]["parents"] != [self.ref] and not body.get("force"):
            return make_response(422, {"message": "Update is not a fast forward"}, url)
        self.ref = body["sha"]
        return make_response(200, {"object": {"sha": self.ref}}, url)

    def _contents(self, method: str, url: str, path: str, body: dict):
        entries = self.head_entries()

        if method == "GET":
            if path in entries:
                content = self.blobs[entries[path]]
                return make_response(200, {
                    "type": "file",
                    "name": path.rsplit("/", 1)[-1],
                    "path": path,
                    "sha": entries[path],
                    "size": len(content),
                    "content": base64.b64encode(content).decode(),
                    "encoding": "base64",
                }, url)
            listing = {}
            for entry_path, sha in entries.items():
                if not entry_path.startswith(path + "/"):
                    continue
                rest = entry_path[len(path) + 1:]
                name = rest.split("/", 1)[0]
                child = f"{path}/{name}"
                kind = "dir" if "/" in rest else "file"
                listing[name] = {"name": name, "path": child, "sha": sha, "type": kind}
            if listing:
                return make_response(200, [listing[k] for k in sorted(listing)], url)
            return make_response(404, {"message": "Not Found"}, url)

        if method == "PUT":
            if path in entries and body.get("sha") != entries[path]:
                return make_response(409, {"message": "sha does not match"}, url)
            self.push({path: base64.b64decode(body["content"])}, body["message"])
            return make_response(201, {"content": {"path": path}, "commit": {"sha": self.ref}}, url)

        if method == "DELETE":
            if path not in entries:
                return make_response(404, {"message": "Not Found"}, url)
            if body.get("sha") != entries[path]:
                return make_response(409, {"message": "sha does not match"}, url)
            remaining = {p: s for p, s in entries.items() if p != path}
            self.ref = self._commit(self._tree(remaining), [self.ref], body["message"])
            return make_response(200, {"commit": {"sha": self.ref}}, url)

        return make_response(405, {"message": "Method not allowed"}, url)


class StubEncoder(EncoderBackend):
    """Encoder producing marker bytes; formats in `failing` raise."""

    name = "stub"

    def __init__(self, formats: set[str], failing: set[str] = frozenset()):
        self.formats = formats
        self.failing = failing

    def supports(self, image_format: str) -> bool:
        return image_format in self.formats

    def encode(self, data: bytes, image_format: str, quality: int) -> bytes:
        if image_format in self.failing:
            raise OSError(f"{image_format} encoder crashed")
        return f"{image_format}:{len(data)}".encode()


def ok_response(url: str, content: bytes = b"imagebytes") -> httpx.Response:
    return httpx.Response(200, content=content, request=httpx.Request("GET", url))


def missing_response(url: str) -> httpx.Response:
    return httpx.Response(404, request=httpx.Request("GET", url))


def client_for(settings: SyncSettings, fake: FakeGitHub) -> GitHubClient:
    """GitHubClient sending its requests to an in-memory repository."""
    client = GitHubClient(settings, config={"retry_delay": 0})
    client._client = MagicMock()
    client._client.request.side_effect = fake
    return client


@pytest.fixture
def settings(tmp_path):
    """Sync settings pointing at a fake repository and temporary directories."""
    return SyncSettings(
        repository=REPO,
        branch=BRANCH,
        token="ghp_test_token",
        site_url="https://example.org",
        state_dir=tmp_path / "state",
        temp_dir=tmp_path / "tmp",
    )


@pytest.fixture
def fake_github():
    """Empty in-memory repository."""
    return FakeGitHub()


@pytest.fixture
def github_client(settings, fake_github):
    """GitHubClient whose HTTP transport is the in-memory repository."""
    return client_for(settings, fake_github)


@pytest.fixture
def sample_item_data():
    """A published post as exported by the content source."""
    return {
        "id": 42,
        "title": "Hello World",
        "body": (
            "<!-- wp:paragraph --><p>Welcome to <strong>the</strong> site.</p>"
            "<!-- /wp:paragraph -->\n"
            '<p><img src="https://example.org/wp-content/uploads/photo.jpg" alt="A photo"></p>'
        ),
        "excerpt": None,
        "status": "publish",
        "created_at": "2024-03-15T10:00:00+00:00",
        "modified_at": "2024-03-16T08:30:00+00:00",
        "author_id": 1,
        "author_name": "Jane Doe",
        "taxonomy_terms": [
            {"taxonomy": "post_tag", "name": "python"},
            {"taxonomy": "post_tag", "name": "hugo"},
            {"taxonomy": "category", "name": "News"},
        ],
        "thumbnail_ref": "101",
        "slug": "hello-world",
        "content_type": "post",
    }


@pytest.fixture
def content_dir(tmp_path, sample_item_data):
    """Content export directory holding the sample item and its attachment."""
    root = tmp_path / "content"
    items = root / "items"
    items.mkdir(parents=True)

    (items / "42.json").write_text(json.dumps(sample_item_data))

    draft = dict(sample_item_data, id=7, status="draft", slug="draft-post", title="Draft")
    (items / "7.json").write_text(json.dumps(draft))

    (root / "attachments.json").write_text(
        json.dumps({"101": "https://example.org/wp-content/uploads/cover.png"})
    )
    return root


@pytest.fixture
def content_source(content_dir):
    return JsonContentSource(content_dir)


@pytest.fixture
def png_bytes():
    """A small RGB PNG image."""
    buffer = BytesIO()
    Image.new("RGB", (8, 8), (200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def mock_http_client():
    """HTTP client serving every URL except ones containing 'missing'."""
    client = MagicMock(spec=httpx.Client)
    client.get.side_effect = (
        lambda url: missing_response(url) if "missing" in url else ok_response(url)
    )
    return client


@pytest.fixture
def app(settings, content_source, github_client, mock_http_client):
    """Application wired to the in-memory repository and a stub WebP encoder."""
    media = MediaProcessor(
        settings,
        content_source,
        encoders=EncoderChain([StubEncoder({"webp"})]),
        http_client=mock_http_client,
    )
    return Application(settings, content_source, client=github_client, media=media)
