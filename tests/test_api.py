"""
HTTP tests for the document, ingestion and user routers.

Runs the app with an injected in-memory context and signs tokens with a test
secret. The TestClient context manager keeps one event loop alive for the
whole test so spawned ingestion tasks keep running between requests.
"""

import asyncio
import logging
import time
from typing import Iterator

import jwt
import pytest
from fastapi.testclient import TestClient

from docingest.config import Settings, get_settings
from docingest.context import AppContext, build_memory_context
from docingest.main import create_application
from docingest.models.user import User, UserRole

from helpers import GatedExtractor

SECRET = "test-secret"


def auth(sub: str, role: str = "editor", **claims) -> dict:
    token = jwt.encode({"sub": sub, "role": role, **claims}, SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


def make_client(context: AppContext) -> TestClient:
    app = create_application(context)
    app.dependency_overrides[get_settings] = lambda: Settings(jwt_secret=SECRET, max_upload_size_mb=1)
    return TestClient(app)


def upload(client: TestClient, headers: dict, title: str = "Contract", content: bytes = b"hello") -> dict:
    response = client.post(
        "/api/documents",
        headers=headers,
        data={"title": title, "description": "MSA"},
        files={"file": ("contract.pdf", content, "application/pdf")},
    )
    assert response.status_code == 201, response.text
    return response.json()


def poll_status(client: TestClient, process_id: str, headers: dict, wanted: str) -> dict:
    for _ in range(200):
        body = client.get(f"/api/ingestion/status/{process_id}", headers=headers).json()
        if body["status"] == wanted:
            return body
        time.sleep(0.01)
    raise AssertionError(f"process {process_id} never reached {wanted}")


@pytest.fixture
def client(upload_dir) -> Iterator[TestClient]:
    with make_client(build_memory_context(upload_dir)) as test_client:
        yield test_client


class TestAuthentication:
    def test_missing_token_is_rejected(self, client) -> None:
        assert client.get("/api/documents").status_code in (401, 403)

    def test_bad_signature_is_unauthorized(self, client) -> None:
        token = jwt.encode({"sub": "u-1"}, "wrong-secret", algorithm="HS256")
        response = client.get("/api/documents", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_expired_token_is_unauthorized(self, client) -> None:
        response = client.get("/api/documents", headers=auth("u-1", exp=int(time.time()) - 60))
        assert response.status_code == 401
        assert response.json()["detail"] == "Token has expired"

    def test_inactive_user_is_forbidden(self, upload_dir) -> None:
        context = build_memory_context(upload_dir)
        asyncio.run(context.users.create(User(id="gone-1", role=UserRole.EDITOR, active=False)))

        with make_client(context) as client:
            response = client.get("/api/documents", headers=auth("gone-1"))

        assert response.status_code == 403

    def test_first_request_provisions_user_with_token_role(self, upload_dir) -> None:
        context = build_memory_context(upload_dir)

        with make_client(context) as client:
            client.get("/api/documents", headers=auth("new-1", role="ADMIN", email="a@example.com"))

        user = asyncio.run(context.users.get("new-1"))
        assert user.role == UserRole.ADMIN
        assert user.email == "a@example.com"


class TestDocumentsAPI:
    def test_upload_and_read_back(self, client) -> None:
        headers = auth("editor-1")
        document = upload(client, headers)

        assert document["status"] == "pending"
        assert document["size"] == 5
        assert document["file_name"] == "contract.pdf"
        fetched = client.get(f"/api/documents/{document['id']}", headers=headers)
        assert fetched.status_code == 200
        assert fetched.json()["title"] == "Contract"

    def test_viewer_cannot_upload(self, client) -> None:
        response = client.post(
            "/api/documents",
            headers=auth("viewer-1", role="viewer"),
            data={"title": "x"},
            files={"file": ("a.txt", b"x", "text/plain")},
        )
        assert response.status_code == 403

    def test_oversized_upload_is_rejected(self, client, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="docingest.api.documents"):
            response = client.post(
                "/api/documents",
                headers=auth("editor-1"),
                data={"title": "Big"},
                files={"file": ("big.bin", b"0" * (1024 * 1024 + 1), "application/octet-stream")},
            )
        assert response.status_code == 413
        assert "Rejected upload of 1048577 bytes from user editor-1" in caplog.text

    def test_other_editor_gets_forbidden_and_missing_is_not_found(self, client) -> None:
        document = upload(client, auth("editor-1"))

        assert client.get(f"/api/documents/{document['id']}", headers=auth("editor-2")).status_code == 403
        assert client.get("/api/documents/missing", headers=auth("editor-2")).status_code == 404

    def test_list_is_scoped_and_paginated(self, client) -> None:
        for title in ["a", "b", "c"]:
            upload(client, auth("editor-1"), title=title)
        upload(client, auth("editor-2"), title="theirs")

        mine = client.get("/api/documents", params={"limit": 2, "sort_by": "title", "sort_order": "asc"}, headers=auth("editor-1"))
        everything = client.get("/api/documents", headers=auth("admin-1", role="admin"))

        assert mine.status_code == 200
        assert [d["title"] for d in mine.json()["items"]] == ["a", "b"]
        assert mine.json()["total"] == 3
        assert everything.json()["total"] == 4

    def test_invalid_pagination_is_unprocessable(self, client) -> None:
        response = client.get("/api/documents", params={"page": 0}, headers=auth("editor-1"))
        assert response.status_code == 422

    def test_patch_by_owner_and_by_viewer(self, client) -> None:
        document = upload(client, auth("editor-1"))

        updated = client.patch(f"/api/documents/{document['id']}", json={"title": "Renamed"}, headers=auth("editor-1"))
        denied = client.patch(
            f"/api/documents/{document['id']}", json={"title": "x"}, headers=auth("viewer-1", role="viewer")
        )
        bad_field = client.patch(f"/api/documents/{document['id']}", json={"status": "completed"}, headers=auth("editor-1"))

        assert updated.status_code == 200
        assert updated.json()["title"] == "Renamed"
        assert denied.status_code == 403
        assert bad_field.status_code == 422

    def test_delete_then_not_found(self, client) -> None:
        headers = auth("editor-1")
        document = upload(client, headers)

        assert client.delete(f"/api/documents/{document['id']}", headers=headers).status_code == 204
        assert client.get(f"/api/documents/{document['id']}", headers=headers).status_code == 404


class TestIngestionAPI:
    def test_ingestion_runs_to_completion(self, client) -> None:
        headers = auth("editor-1")
        document = upload(client, headers)

        response = client.post("/api/ingestion", json={"document_id": document["id"]}, headers=headers)

        assert response.status_code == 201
        assert response.json()["status"] in ("pending", "running", "completed")
        process = poll_status(client, response.json()["id"], headers, "completed")
        assert process["result"]["extracted_text"].startswith("Extracted text from file (5 bytes)")
        refreshed = client.get(f"/api/documents/{document['id']}", headers=headers).json()
        assert refreshed["status"] == "completed"

    def test_second_ingestion_conflicts_and_cancel_resets_document(self, upload_dir) -> None:
        gate = GatedExtractor()
        headers = auth("editor-1")

        with make_client(build_memory_context(upload_dir, extractor=gate)) as client:
            document = upload(client, headers)
            first = client.post("/api/ingestion", json={"document_id": document["id"]}, headers=headers)
            second = client.post("/api/ingestion", json={"document_id": document["id"]}, headers=headers)
            deleting = client.delete(f"/api/documents/{document['id']}", headers=headers)

            cancelled = client.post(f"/api/ingestion/{first.json()['id']}/cancel", headers=headers)
            again = client.post(f"/api/ingestion/{first.json()['id']}/cancel", headers=headers)
            refreshed = client.get(f"/api/documents/{document['id']}", headers=headers).json()
            gate.released = True

        assert first.status_code == 201
        assert second.status_code == 409
        assert deleting.status_code == 409
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "failed"
        assert cancelled.json()["error_message"] == "Process cancelled by user"
        assert again.status_code == 409
        assert refreshed["status"] == "pending"

    def test_viewer_cannot_start_ingestion(self, client) -> None:
        document = upload(client, auth("editor-1"))

        response = client.post(
            "/api/ingestion", json={"document_id": document["id"]}, headers=auth("viewer-1", role="viewer")
        )

        assert response.status_code == 403

    def test_unknown_document_and_process(self, client) -> None:
        headers = auth("editor-1")
        assert client.post("/api/ingestion", json={"document_id": "missing"}, headers=headers).status_code == 404
        assert client.get("/api/ingestion/status/missing", headers=headers).status_code == 404

    def test_list_filters_by_document(self, client) -> None:
        headers = auth("editor-1")
        first = upload(client, headers, title="first")
        second = upload(client, headers, title="second")
        client.post("/api/ingestion", json={"document_id": first["id"]}, headers=headers)
        client.post("/api/ingestion", json={"document_id": second["id"]}, headers=headers)

        response = client.get("/api/ingestion", params={"document_id": first["id"]}, headers=headers)

        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["items"][0]["document_id"] == first["id"]


class TestUploadMetadata:
    def test_metadata_form_field_is_stored(self, client) -> None:
        response = client.post(
            "/api/documents",
            headers=auth("editor-1"),
            data={"title": "Tagged", "metadata": '{"pages": 3, "tags": ["lease"]}'},
            files={"file": ("a.txt", b"x", "text/plain")},
        )

        assert response.status_code == 201
        assert response.json()["metadata"] == {"pages": 3, "tags": ["lease"]}

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]"])
    def test_metadata_must_be_a_json_object(self, client, raw) -> None:
        response = client.post(
            "/api/documents",
            headers=auth("editor-1"),
            data={"title": "Tagged", "metadata": raw},
            files={"file": ("a.txt", b"x", "text/plain")},
        )

        assert response.status_code == 422


class TestUsersAPI:
    def test_me_returns_provisioned_user(self, client) -> None:
        response = client.get("/api/users/me", headers=auth("editor-1", email="e@example.com"))

        assert response.status_code == 200
        assert response.json()["id"] == "editor-1"
        assert response.json()["role"] == "editor"

    def test_admin_deactivates_user_and_their_token_stops_working(self, client) -> None:
        editor = auth("editor-1")
        admin = auth("admin-1", role="admin")
        assert client.get("/api/documents", headers=editor).status_code == 200

        listed = client.get("/api/users", params={"role": "editor"}, headers=admin)
        patched = client.patch("/api/users/editor-1", json={"active": False}, headers=admin)

        assert [u["id"] for u in listed.json()["items"]] == ["editor-1"]
        assert patched.status_code == 200
        assert patched.json()["active"] is False
        assert client.get("/api/documents", headers=editor).status_code == 403

    def test_role_change_sticks_despite_token_claim(self, client) -> None:
        client.get("/api/users/me", headers=auth("editor-1"))
        client.patch("/api/users/editor-1", json={"role": "viewer"}, headers=auth("admin-1", role="admin"))

        response = client.post(
            "/api/documents",
            headers=auth("editor-1"),
            data={"title": "x"},
            files={"file": ("a.txt", b"x", "text/plain")},
        )

        assert response.status_code == 403

    def test_non_admin_gets_forbidden(self, client) -> None:
        headers = auth("editor-1")
        assert client.get("/api/users", headers=headers).status_code == 403
        assert client.patch("/api/users/editor-1", json={"role": "admin"}, headers=headers).status_code == 403
        assert client.delete("/api/users/editor-1", headers=headers).status_code == 403

    def test_admin_deletes_user_and_unknown_is_not_found(self, client) -> None:
        admin = auth("admin-1", role="admin")
        client.get("/api/users/me", headers=auth("viewer-1", role="viewer"))

        assert client.delete("/api/users/viewer-1", headers=admin).status_code == 204
        assert client.get("/api/users/viewer-1", headers=admin).status_code == 404
        assert client.patch("/api/users/ghost", json={"active": True}, headers=admin).status_code == 404

    def test_unknown_patch_field_is_unprocessable(self, client) -> None:
        response = client.patch("/api/users/editor-1", json={"email": "x@y"}, headers=auth("admin-1", role="admin"))
        assert response.status_code == 422


def test_debug_setting_reaches_application(monkeypatch, upload_dir) -> None:
    monkeypatch.setenv("DEBUG", "true")
    get_settings.cache_clear()
    try:
        assert create_application(build_memory_context(upload_dir)).debug is True
    finally:
        get_settings.cache_clear()
