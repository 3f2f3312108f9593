"""
Memory system data models.

Defines the persisted snapshot (flash memories, long-term memories,
conversation history) and the tagged outputs exchanged between turn stages.
Stored JSON uses camelCase keys; Python attributes are snake_case.
"""

from typing import Annotated, Any, List, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter
import time


# Type aliases
Role = Literal["user", "assistant", "system"]
ParseTier = Literal["structured", "pattern", "none"]

CONVERSATION_SUMMARY_TOPIC = "conversation_summary"


class InteractionEvent(BaseModel):
    """One dialogue utterance. Immutable once appended to a history."""

    role: Role = Field(..., description="Speaker role")
    content: str = Field("", description="Utterance text")
    utterance: Optional[str] = Field(None, description="Legacy text field, read when content is empty")
    agent_name: Optional[str] = Field(None, alias="agentName", description="Display label")

    class Config:
        frozen = True
        populate_by_name = True

    @property
    def text(self) -> str:
        """Utterance text, falling back to the legacy field."""
        return self.content or self.utterance or ""

    def render(self) -> str:
        """Render as a ``role: text`` dialogue line."""
        return f"{self.role}: {self.text}"


class MemoryRecord(BaseModel):
    """
    One remembered fact or summary.

    Records are created by flash extraction or long-term consolidation and
    only change when an empty embedding is back-filled.
    """

    text: str = Field(..., min_length=1, description="Fact or summary text")
    embedding: List[float] = Field(default_factory=list, description="Embedding vector (empty until embedded)")
    topics: List[str] = Field(default_factory=list, description="Topic labels")
    created_at: float = Field(default_factory=time.time, alias="createdAt", description="Unix timestamp")
    importance: Optional[float] = Field(None, description="Reserved; unused by merge")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "text": "User likes jazz.",
                "embedding": [0.12, -0.03, 0.44],
                "topics": ["music"],
                "createdAt": 1696723200.0,
            }
        }

    @property
    def is_embedded(self) -> bool:
        return len(self.embedding) > 0


class MemorySnapshot(BaseModel):
    """
    The full persisted memory state for one user.

    All three sequences are chronological (oldest first); truncation keeps
    the tail.
    """

    flash_memory: List[MemoryRecord] = Field(default_factory=list, alias="flashMemory")
    long_term_memory: List[MemoryRecord] = Field(default_factory=list, alias="longTermMemory")
    conversation_history: List[InteractionEvent] = Field(default_factory=list, alias="conversationHistory")

    class Config:
        populate_by_name = True

    @classmethod
    def empty(cls) -> "MemorySnapshot":
        return cls()

    def to_storage_dict(self) -> dict:
        """Convert to the camelCase dict used for storage."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_storage_dict(cls, data: dict) -> "MemorySnapshot":
        """Load from storage dict; missing collections default to empty."""
        return cls.model_validate(data)


class MemoryUpdaterRequest(BaseModel):
    """Per-turn payload handed to the flash and long-term stages."""

    event_history: List[InteractionEvent] = Field(default_factory=list, alias="eventHistory")
    memory_snapshot: MemorySnapshot = Field(default_factory=MemorySnapshot, alias="memorySnapshot")
    force_long_term: bool = Field(False, alias="forceLongTerm")

    class Config:
        populate_by_name = True


class TurnInput(BaseModel):
    """Input to a turn: the new query plus the caller-owned state."""

    query: str = ""
    snapshot: Optional[MemorySnapshot] = None
    history: List[InteractionEvent] = Field(default_factory=list)


# ============================================================================
# Stage outputs (discriminated by ``kind``)
# ============================================================================

class HistoryUpdate(MemoryUpdaterRequest):
    """Scheduler output: updated history, pre-turn snapshot and the decision."""

    kind: Literal["history_update"] = "history_update"
    response: str = ""
    run_flash: bool = Field(False, alias="runFlash")
    run_long_term: bool = Field(False, alias="runLongTerm")
    turn_count: int = Field(0, alias="turnCount")


class FlashResult(BaseModel):
    """New flash records from one extraction run."""

    kind: Literal["flash"] = "flash"
    memory_records: List[MemoryRecord] = Field(default_factory=list, alias="memoryRecords")
    tier: ParseTier = "none"

    class Config:
        populate_by_name = True


class LongTermResult(BaseModel):
    """New long-term records from one consolidation run."""

    kind: Literal["long_term"] = "long_term"
    new_long_term_memory: List[MemoryRecord] = Field(default_factory=list, alias="newLongTermMemory")

    class Config:
        populate_by_name = True


class SnapshotPayload(BaseModel):
    """A bare snapshot handed to the merge stage."""

    kind: Literal["snapshot"] = "snapshot"
    snapshot: MemorySnapshot


StageOutput = Annotated[
    Union[HistoryUpdate, FlashResult, LongTermResult, SnapshotPayload],
    Field(discriminator="kind"),
]

_stage_output_adapter = TypeAdapter(StageOutput)


def parse_stage_output(value: Any) -> StageOutput:
    """
    Normalize a stage output into the tagged union.

    Models pass through; a ``MemorySnapshot`` or ``MemoryUpdaterRequest`` is
    wrapped; dicts with a ``kind`` key are validated directly. Untagged dicts
    are classified by their keys in a fixed order: flash records, long-term
    records, history update, bare snapshot.

    Raises:
        ValueError: If the value matches no known shape
    """
    if isinstance(value, (HistoryUpdate, FlashResult, LongTermResult, SnapshotPayload)):
        return value
    if isinstance(value, MemorySnapshot):
        return SnapshotPayload(snapshot=value)
    if isinstance(value, MemoryUpdaterRequest):
        return HistoryUpdate(**value.model_dump())

    if not isinstance(value, dict):
        raise ValueError(f"Unrecognized stage output type: {type(value).__name__}")

    if "kind" in value:
        return _stage_output_adapter.validate_python(value)

    if "memoryRecords" in value or "memory_records" in value:
        return FlashResult.model_validate(value)
    if "newLongTermMemory" in value or "new_long_term_memory" in value:
        return LongTermResult.model_validate(value)
    if any(key in value for key in ("eventHistory", "event_history", "memorySnapshot", "memory_snapshot")):
        return HistoryUpdate.model_validate(value)
    if ("flashMemory" in value or "flash_memory" in value) and ("longTermMemory" in value or "long_term_memory" in value):
        return SnapshotPayload(snapshot=MemorySnapshot.model_validate(value))

    raise ValueError(f"Unrecognized stage output keys: {sorted(value)}")
