"""Per-turn orchestration of the memory pipeline."""

from .conversation import (
    TurnResult,
    ConversationPipeline,
    MemorySession,
    create_generator,
    create_embedder,
    create_pipeline,
)

__all__ = [
    "TurnResult",
    "ConversationPipeline",
    "MemorySession",
    "create_generator",
    "create_embedder",
    "create_pipeline",
]
