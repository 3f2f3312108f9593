"""Test configuration and fixtures."""

from typing import Callable, List, Optional

import pytest

from dialog_memory.memory.schemas import InteractionEvent, MemoryRecord, MemorySnapshot


@pytest.fixture
def make_record() -> Callable[..., MemoryRecord]:
    """Factory for memory records with fixed timestamps."""
    def _make(
        text: str,
        embedding: Optional[List[float]] = None,
        topics: Optional[List[str]] = None,
        created_at: float = 1_700_000_000.0,
    ) -> MemoryRecord:
        return MemoryRecord(
            text=text,
            embedding=embedding or [],
            topics=topics or [],
            created_at=created_at,
        )
    return _make


@pytest.fixture
def sample_history() -> List[InteractionEvent]:
    """Two completed turns."""
    return [
        InteractionEvent(role="user", content="I just moved to Lisbon.", agent_name="User"),
        InteractionEvent(role="assistant", content="How are you finding it?", agent_name="Assistant"),
        InteractionEvent(role="user", content="I love the food, especially pastel de nata.", agent_name="User"),
        InteractionEvent(role="assistant", content="Those are delicious!", agent_name="Assistant"),
    ]


@pytest.fixture
def sample_snapshot(make_record, sample_history) -> MemorySnapshot:
    """Snapshot with one flash record, one long-term record and history."""
    return MemorySnapshot(
        flash_memory=[make_record("User lives in Lisbon.", [1.0, 0.0, 0.0], ["location"])],
        long_term_memory=[make_record("The user recently relocated.", [0.0, 1.0, 0.0], ["conversation_summary"])],
        conversation_history=sample_history,
    )
