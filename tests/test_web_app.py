"""Tests for the FastAPI web application."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from scriptorium.host import DocumentHost
from scriptorium.sources.base import MemorySource
from scriptorium.web.app import create_app


@pytest.fixture
def source() -> MemorySource:
    return MemorySource(
        documents={
            "hello": ("write('hello')", "py"),
            "pages/home": ("<%= 6 * 7 %>", "tpl"),
            "broken": ("x = (", "py"),
            "failing": ("raise RuntimeError('down')", "py"),
        }
    )


@pytest.fixture
def host(source: MemorySource) -> DocumentHost:
    return DocumentHost(source, min_validity_check_interval=0)


@pytest.fixture
def client(host: DocumentHost) -> TestClient:
    return TestClient(create_app(host))


class TestDocumentsEndpoint:
    """Tests for GET /documents."""

    def test_list_documents(self, client: TestClient) -> None:
        """Lists names and cache statistics."""
        response = client.get("/documents")
        assert response.status_code == 200
        payload = response.json()
        assert payload["documents"] == ["broken", "failing", "hello", "pages/home"]
        assert payload["cached"] == []
        assert payload["stats"]["size"] == 0

    def test_cached_after_run(self, client: TestClient) -> None:
        """Run documents show up as cached."""
        client.get("/documents/hello")
        payload = client.get("/documents").json()
        assert payload["cached"] == ["hello"]
        assert payload["stats"]["misses"] == 1


class TestRunEndpoint:
    """Tests for GET /documents/{name}."""

    def test_run_document(self, client: TestClient) -> None:
        """Returns the output as plain text."""
        response = client.get("/documents/hello")
        assert response.status_code == 200
        assert response.text == "hello"
        assert response.headers["content-type"].startswith("text/plain")

    def test_nested_name(self, client: TestClient) -> None:
        """Names may contain slashes."""
        response = client.get("/documents/pages/home")
        assert response.status_code == 200
        assert response.text == "42"

    def test_not_found(self, client: TestClient) -> None:
        """Unknown documents are 404."""
        response = client.get("/documents/ghost")
        assert response.status_code == 404
        assert response.json()["detail"]["kind"] == "not_found"

    def test_parsing_error(self, client: TestClient) -> None:
        """Build failures are 500 with the error payload."""
        response = client.get("/documents/broken")
        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["kind"] == "parsing"
        assert detail["stack"][0]["document"] == "broken"

    def test_execution_error(self, client: TestClient) -> None:
        """Runtime failures are 500 with the failing line."""
        response = client.get("/documents/failing")
        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["kind"] == "execution"
        assert detail["message"] == "RuntimeError: down"
        assert detail["stack"][0]["line"] == 1


class TestDefrostEndpoint:
    """Tests for the defrost endpoints."""

    def test_blocking_defrost(self, client: TestClient) -> None:
        """A blocking batch reports its failures."""
        response = client.post("/defrost", json={"concurrency": 2, "blocking": True})
        assert response.status_code == 200
        payload = response.json()
        assert payload["done"] is True
        assert payload["total"] == 4
        assert payload["built"] == ["failing", "hello", "pages/home"]
        assert [failure["name"] for failure in payload["failures"]] == ["broken"]
        assert payload["failures"][0]["kind"] == "parsing"

    def test_background_defrost(self, client: TestClient, host: DocumentHost) -> None:
        """A background batch can be polled."""
        response = client.post("/defrost", json={})
        assert response.status_code == 200
        assert host.defroster().wait(timeout=10)

        status = client.get("/defrost").json()
        assert status["done"] is True
        assert status["completed"] == 4

    def test_invalid_concurrency(self, client: TestClient) -> None:
        """Concurrency must be positive."""
        response = client.post("/defrost", json={"concurrency": 0})
        assert response.status_code == 422

    def test_status_before_any_batch(self, client: TestClient) -> None:
        """Status is available before the first batch."""
        status = client.get("/defrost").json()
        assert status == {
            "done": True,
            "interrupted": False,
            "total": 0,
            "completed": 0,
            "built": [],
            "failures": [],
        }


class TestCacheEndpoint:
    """Tests for DELETE /cache."""

    def test_clear_cache(self, client: TestClient, host: DocumentHost) -> None:
        """Clearing empties the host's cache."""
        client.get("/documents/hello")
        assert len(host.cache) == 1

        response = client.delete("/cache")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert len(host.cache) == 0
