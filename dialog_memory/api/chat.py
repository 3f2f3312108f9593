"""
Chat and memory endpoints.

Each chat request runs one turn of the memory pipeline for the given user
and persists the resulting snapshot.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from dialog_memory.config.settings import Settings
from dialog_memory.memory.schemas import MemoryRecord
from dialog_memory.memory.store import SnapshotStore
from dialog_memory.persist.sqlite_store import KVStore
from dialog_memory.pipeline.conversation import ConversationPipeline, MemorySession, create_pipeline
from .schemas import (
    ChatRequest,
    ChatResponse,
    DeleteMemoryResponse,
    HistoryItem,
    MemoryItem,
    MemoryResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter()


# Lazily created singletons (overridable through app.dependency_overrides)
_settings: Optional[Settings] = None
_kv_store: Optional[KVStore] = None
_pipeline: Optional[ConversationPipeline] = None
_snapshot_store: Optional[SnapshotStore] = None


def get_settings() -> Settings:
    """Dependency to get settings (read from the environment once)."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def get_kv_store(settings: Settings = Depends(get_settings)) -> KVStore:
    """Dependency to get the shared KV store."""
    global _kv_store
    if _kv_store is None:
        _kv_store = KVStore(Path(settings.paths.db_path))
    return _kv_store


def get_snapshot_store(kv: KVStore = Depends(get_kv_store)) -> SnapshotStore:
    """Dependency to get the snapshot store."""
    global _snapshot_store
    if _snapshot_store is None:
        _snapshot_store = SnapshotStore(kv=kv)
    return _snapshot_store


def get_pipeline(
    settings: Settings = Depends(get_settings),
    kv: KVStore = Depends(get_kv_store),
) -> ConversationPipeline:
    """Dependency to get the conversation pipeline."""
    global _pipeline
    if _pipeline is None:
        try:
            _pipeline = create_pipeline(settings, kv=kv)
        except RuntimeError as e:
            raise HTTPException(status_code=503, detail=f"Pipeline not available: {e}")
    return _pipeline


def reset_dependencies() -> None:
    """Close and forget the cached singletons."""
    global _settings, _kv_store, _pipeline, _snapshot_store
    if _kv_store is not None:
        _kv_store.close()
    _settings = None
    _kv_store = None
    _pipeline = None
    _snapshot_store = None


def _memory_item(record: MemoryRecord) -> MemoryItem:
    return MemoryItem(
        text=record.text,
        topics=list(record.topics),
        created_at=record.created_at,
        embedded=record.is_embedded,
    )


@router.post("/chat", response_model=ChatResponse)
def chat_endpoint(
    request: ChatRequest,
    pipeline: ConversationPipeline = Depends(get_pipeline),
    store: SnapshotStore = Depends(get_snapshot_store),
):
    """
    Run one conversation turn with memory.

    Flow:
    1. Load the user's snapshot
    2. Recall memories, generate the reply, schedule memory stages
    3. Run flash / long-term stages when due and merge
    4. Save the new snapshot

    A failed turn returns 500 and leaves the stored snapshot unchanged.
    """
    session = MemorySession(pipeline, store, user_id=request.user_id)

    try:
        result = session.chat(request.message, verbose=request.verbose)
    except Exception as e:
        logger.exception("Turn failed for user %s", request.user_id)
        raise HTTPException(status_code=500, detail=f"Pipeline error: {str(e)}")

    return ChatResponse(
        response=result.response,
        relevant_memories=result.relevant_memories,
        turn_count=result.decision.turn_count,
        run_flash=result.decision.run_flash,
        run_long_term=result.decision.run_long_term,
        new_flash_memories=[r.text for r in result.flash.memory_records] if result.flash else [],
        new_long_term_memories=[r.text for r in result.long_term.new_long_term_memory] if result.long_term else [],
        run_id=result.run_id,
        timings=result.timings,
    )


@router.get("/memory/{user_id}", response_model=MemoryResponse)
def get_memory(user_id: str, store: SnapshotStore = Depends(get_snapshot_store)):
    """Return a user's stored memory (embeddings omitted)."""
    snapshot = store.load(user_id)

    return MemoryResponse(
        user_id=user_id,
        flash_memory=[_memory_item(r) for r in snapshot.flash_memory],
        long_term_memory=[_memory_item(r) for r in snapshot.long_term_memory],
        conversation_history=[
            HistoryItem(role=e.role, content=e.text, agent_name=e.agent_name)
            for e in snapshot.conversation_history
        ],
    )


@router.delete("/memory/{user_id}", response_model=DeleteMemoryResponse)
def delete_memory(user_id: str, store: SnapshotStore = Depends(get_snapshot_store)):
    """Forget everything stored for a user."""
    deleted = store.delete(user_id)

    return DeleteMemoryResponse(
        deleted=deleted,
        message=f"Memory cleared for user {user_id}" if deleted else f"No memory stored for user {user_id}",
    )
