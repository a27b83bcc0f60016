"""Tests for the action card endpoints."""

import pytest
from fastapi.testclient import TestClient

from conftest import text_chunk, tool_round

from vault_agent.api.main import create_app


@pytest.fixture
def pending(make_runtime, fake_provider):
    """A client plus the reflection key of one pending delete."""
    runtime = make_runtime(
        [
            tool_round("call_1", "obsidian_delete_file", {"filepath": "notes/todo.md"}),
            [text_chunk("Please confirm.")],
        ]
    )
    client = TestClient(create_app(runtime=runtime))
    data = client.post("/v1/chat", json={"message": "delete notes/todo.md"}).json()
    return client, data["action_cards"][0]["id"], fake_provider


class TestConfirm:
    """Tests for POST /actioncards/{key}/confirm."""

    def test_confirm_executes(self, pending):
        client, key, provider = pending

        response = client.post(f"/actioncards/{key}/confirm")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Operation 'obsidian_delete_file' executed successfully"
        assert data["card"]["status"] == "Completed"
        assert provider.executed() == [
            ("obsidian", "obsidian_delete_file", {"filepath": "notes/todo.md"})
        ]

    def test_second_confirm_is_404(self, pending):
        client, key, provider = pending
        client.post(f"/actioncards/{key}/confirm")

        response = client.post(f"/actioncards/{key}/confirm")

        assert response.status_code == 404
        assert response.json()["detail"] == "Action card not found or already executed"
        assert len(provider.executed()) == 1

    def test_unknown_key_is_404(self, pending):
        client, _, _ = pending
        assert client.post("/actioncards/reflection_unknown/confirm").status_code == 404


class TestCancel:
    """Tests for POST /actioncards/{key}/cancel."""

    def test_cancel(self, pending):
        client, key, provider = pending

        response = client.post(f"/actioncards/{key}/cancel")

        assert response.status_code == 200
        assert response.json()["message"] == "Operation 'obsidian_delete_file' cancelled successfully"
        assert provider.executed() == []

    def test_confirm_after_cancel_is_404(self, pending):
        client, key, provider = pending
        client.post(f"/actioncards/{key}/cancel")

        response = client.post(f"/actioncards/{key}/confirm")

        assert response.status_code == 404
        assert provider.executed() == []

    def test_cancel_twice_is_404(self, pending):
        client, key, _ = pending
        client.post(f"/actioncards/{key}/cancel")
        response = client.post(f"/actioncards/{key}/cancel")
        assert response.status_code == 404
        assert response.json()["detail"] == "Action card not found or already processed"


class TestGetCard:
    def test_get_pending_card(self, pending):
        client, key, _ = pending
        data = client.get(f"/actioncards/{key}").json()
        assert data["status"] == "Pending"
        assert data["reflectionMetadata"]["reflectionKey"] == key

    def test_get_unknown_card(self, pending):
        client, _, _ = pending
        assert client.get("/actioncards/reflection_missing").status_code == 404
