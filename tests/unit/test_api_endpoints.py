"""
Unit tests for API endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from dialog_memory.api.chat import get_pipeline, get_snapshot_store
from dialog_memory.api.main import app
from dialog_memory.config.settings import SchedulerCfg, Settings
from dialog_memory.embedding.encoders import HashingEmbedder
from dialog_memory.generation.generator import MockGenerator
from dialog_memory.memory.store import SnapshotStore
from dialog_memory.pipeline.conversation import ConversationPipeline


FLASH_JSON = '[{"important": true, "memory": "User is learning Portuguese.", "topic": "languages"}]'


@pytest.fixture
def generator():
    return MockGenerator(keyword_responses={"JSON list": FLASH_JSON})


@pytest.fixture
def store(kv):
    return SnapshotStore(kv=kv)


@pytest.fixture
def client(generator, store):
    """Create test client with test pipeline and store."""
    settings = Settings(scheduler=SchedulerCfg(flash_interval=2))
    pipeline = ConversationPipeline(generator, HashingEmbedder(dim=64), settings)

    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_snapshot_store] = lambda: store

    client = TestClient(app)
    yield client

    # Clean up
    app.dependency_overrides.clear()


def test_health_endpoint(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert isinstance(data["components"], dict)


def test_chat_first_turn(client, store):
    response = client.post("/api/chat", json={"message": "Hi", "user_id": "alice"})

    assert response.status_code == 200
    data = response.json()
    assert data["response"] == MockGenerator.DEFAULT_RESPONSE
    assert data["turn_count"] == 1
    assert data["run_flash"] is False
    assert data["new_flash_memories"] == []
    assert data["run_id"]
    assert "generate" in data["timings"]

    history = store.load("alice").conversation_history
    assert [e.role for e in history] == ["user", "assistant"]


def test_chat_second_turn_extracts_memory(client):
    client.post("/api/chat", json={"message": "Hi", "user_id": "alice"})
    response = client.post("/api/chat", json={"message": "I'm learning Portuguese.", "user_id": "alice"})

    data = response.json()
    assert data["turn_count"] == 2
    assert data["run_flash"] is True
    assert data["new_flash_memories"] == ["User is learning Portuguese."]


def test_get_memory(client):
    client.post("/api/chat", json={"message": "Hi", "user_id": "alice"})
    client.post("/api/chat", json={"message": "I'm learning Portuguese.", "user_id": "alice"})

    response = client.get("/api/memory/alice")

    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == "alice"
    assert [m["text"] for m in data["flash_memory"]] == ["User is learning Portuguese."]
    assert data["flash_memory"][0]["topics"] == ["languages"]
    assert data["flash_memory"][0]["embedded"] is True
    assert "embedding" not in data["flash_memory"][0]
    assert len(data["conversation_history"]) == 4


def test_get_memory_unknown_user(client):
    data = client.get("/api/memory/nobody").json()

    assert data["flash_memory"] == []
    assert data["conversation_history"] == []


def test_delete_memory(client, store):
    client.post("/api/chat", json={"message": "Hi", "user_id": "alice"})

    response = client.delete("/api/memory/alice")
    assert response.status_code == 200
    assert response.json()["deleted"] is True
    assert store.load("alice").conversation_history == []

    assert client.delete("/api/memory/alice").json()["deleted"] is False


def test_chat_validation(client):
    assert client.post("/api/chat", json={"message": ""}).status_code == 422
    assert client.post("/api/chat", json={}).status_code == 422


def test_chat_failure_returns_500_and_keeps_memory(client, generator, store):
    client.post("/api/chat", json={"message": "Hi", "user_id": "alice"})
    before = store.load("alice")

    def broken(prompt, config=None):
        raise RuntimeError("model offline")

    generator.generate = broken

    response = client.post("/api/chat", json={"message": "Hello again", "user_id": "alice"})

    assert response.status_code == 500
    assert "model offline" in response.json()["detail"]
    assert store.load("alice") == before
