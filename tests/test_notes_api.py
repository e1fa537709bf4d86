import asyncio
import os
import re

import pytest
from fastapi.testclient import TestClient

# Ensure we default to memory backend for tests to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from notes_backend.backends import InMemoryBackend  # noqa: E402
from notes_backend.errors import BackendOperationError  # noqa: E402
from notes_backend.main import create_app  # noqa: E402
from notes_backend.store import NoteStore  # noqa: E402


class TickingClock:
    """Advances by one second on every read so each mutation gets a later timestamp."""

    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        self.now += 1000
        return self.now


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def client(backend):
    store = NoteStore(backend, clock=TickingClock())
    return TestClient(create_app(store=store))


def create(client, content="Test note"):
    res = client.post("/api/v1/notes/", json={"content": content})
    assert res.status_code == 201
    return res.json()


def assert_note_shape(note: dict):
    for key in ["id", "content", "created_at", "updated_at", "done"]:
        assert key in note
    assert re.fullmatch(r"[0-9a-f]{32}", note["id"])
    assert isinstance(note["content"], str)
    assert isinstance(note["created_at"], int)
    assert isinstance(note["updated_at"], int)
    assert isinstance(note["done"], bool)


class TestHealth:
    def test_health_check(self, client):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] in ("memory", "sqlite")


class TestNotesCRUD:
    def test_create_note(self, client):
        note = create(client, "buy milk")
        assert_note_shape(note)
        assert note["content"] == "buy milk"
        assert note["done"] is False
        assert note["created_at"] == note["updated_at"]

        res = client.get("/api/v1/notes/")
        assert res.status_code == 200
        assert res.json() == [note]

    def test_create_empty_content(self, client):
        res = client.post("/api/v1/notes/", json={"content": "   "})
        assert res.status_code == 422
        body = res.json()
        assert body["error"] == "EmptyContentError"
        assert client.get("/api/v1/notes/").json() == []

    def test_create_missing_content_is_request_validation_error(self, client):
        res = client.post("/api/v1/notes/", json={})
        assert res.status_code == 422
        body = res.json()
        assert body.get("error") == "ValidationError"
        assert body.get("message") == "Request validation failed"
        assert isinstance(body.get("detail"), list)

    def test_get_note_and_not_found(self, client):
        note = create(client, "Read book")
        res = client.get(f"/api/v1/notes/{note['id']}")
        assert res.status_code == 200
        assert res.json() == note

        res_404 = client.get("/api/v1/notes/deadbeef")
        assert res_404.status_code == 404
        assert res_404.json()["error"] == "NoteNotFoundError"

    def test_patch_content(self, client):
        note = create(client, "draft")
        res = client.patch(f"/api/v1/notes/{note['id']}", json={"content": "final"})
        assert res.status_code == 200
        updated = res.json()
        assert updated["content"] == "final"
        assert updated["created_at"] == note["created_at"]
        assert updated["updated_at"] > note["updated_at"]

        res_blank = client.patch(f"/api/v1/notes/{note['id']}", json={"content": " \t"})
        assert res_blank.status_code == 422
        assert client.get(f"/api/v1/notes/{note['id']}").json()["content"] == "final"

        res_nf = client.patch("/api/v1/notes/missing", json={"content": "nope"})
        assert res_nf.status_code == 404

    def test_set_done(self, client):
        note = create(client, "laundry")
        res = client.put(f"/api/v1/notes/{note['id']}/done", json={"done": True})
        assert res.status_code == 200
        assert res.json()["done"] is True

        # non-boolean flags are refused before reaching the store
        res_bad = client.put(f"/api/v1/notes/{note['id']}/done", json={"done": "yes"})
        assert res_bad.status_code == 422

        res_nf = client.put("/api/v1/notes/missing/done", json={"done": False})
        assert res_nf.status_code == 404

    def test_delete_note(self, client, backend):
        note = create(client, "ToDelete")
        res_del = client.delete(f"/api/v1/notes/{note['id']}")
        assert res_del.status_code == 204
        assert res_del.text == ""
        assert backend.keys() == []

        res_again = client.delete(f"/api/v1/notes/{note['id']}")
        assert res_again.status_code == 404
        body = res_again.json()
        assert body["error"] == "NoteNotFoundError"
        assert "message" in body


class TestOrdering:
    def test_incomplete_first_then_most_recent(self, client):
        earlier = create(client, "earlier")
        later = create(client, "later")
        assert [n["id"] for n in client.get("/api/v1/notes/").json()] == [later["id"], earlier["id"]]

        client.put(f"/api/v1/notes/{earlier['id']}/done", json={"done": True})
        listed = client.get("/api/v1/notes/").json()
        assert [n["id"] for n in listed] == [later["id"], earlier["id"]]
        assert listed[1]["done"] is True

        client.patch(f"/api/v1/notes/{later['id']}", json={"content": "later, edited"})
        third = create(client, "third")
        assert [n["id"] for n in client.get("/api/v1/notes/").json()] == [third["id"], later["id"], earlier["id"]]


class TestReplaceAll:
    def test_replace_all(self, client):
        create(client, "will be replaced")
        payload = [
            {"id": "a", "content": "a", "created_at": 1, "updated_at": 1},
            {"id": "b", "content": "b", "created_at": 2, "updated_at": 5, "done": True},
            {"id": "c", "content": "c", "created_at": 3, "updated_at": 3},
        ]
        res = client.put("/api/v1/notes/", json=payload)
        assert res.status_code == 200
        assert [n["id"] for n in res.json()] == ["c", "a", "b"]

    def test_replace_all_duplicate_ids(self, client):
        payload = [
            {"id": "a", "content": "a", "created_at": 1, "updated_at": 1},
            {"id": "a", "content": "again", "created_at": 2, "updated_at": 2},
        ]
        res = client.put("/api/v1/notes/", json=payload)
        assert res.status_code == 409
        assert res.json()["error"] == "DuplicateIdError"


class TestStorageFailures:
    def test_corrupt_storage_is_server_error(self, client, backend):
        asyncio.run(backend.set({"notes": {"not": "a list"}}))
        res = client.get("/api/v1/notes/")
        assert res.status_code == 500
        assert res.json()["error"] == "CorruptCollectionError"

    def test_backend_failure_is_bad_gateway(self):
        class FailingBackend(InMemoryBackend):
            async def set(self, items):
                raise BackendOperationError("storage.set failed")

        client = TestClient(create_app(store=NoteStore(FailingBackend())))
        res = client.post("/api/v1/notes/", json={"content": "x"})
        assert res.status_code == 502
        assert res.json()["error"] == "BackendOperationError"


class TestTimestamps:
    def test_fractional_timestamps_are_served(self, client):
        payload = [{"id": "a", "content": "x", "created_at": 1.5, "updated_at": 2.5}]
        res_put = client.put("/api/v1/notes/", json=payload)
        assert res_put.status_code == 200

        res = client.get("/api/v1/notes/")
        assert res.status_code == 200
        [note] = res.json()
        assert note["created_at"] == 1.5
        assert note["updated_at"] == 2.5
        assert note["done"] is False

    def test_fractional_timestamps_written_by_the_store(self, backend):
        store = NoteStore(backend)
        asyncio.run(store.replace_all([{"id": "a", "content": "x", "created_at": 1.5, "updated_at": 1.5}]))
        res = TestClient(create_app(store=store)).get("/api/v1/notes/a")
        assert res.status_code == 200
        assert res.json()["updated_at"] == 1.5
