"""
Pydantic schemas for FastAPI endpoints.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict


class ChatRequest(BaseModel):
    """Request model for /api/chat."""

    message: str = Field(..., description="User message", min_length=1)
    user_id: str = Field("default", description="User whose memory is used", min_length=1)
    verbose: bool = Field(False, description="Log full prompts and memory records")

    class Config:
        json_schema_extra = {
            "example": {
                "message": "I just got back from a jazz concert.",
                "user_id": "alice",
            }
        }


class ChatResponse(BaseModel):
    """Response model for /api/chat."""

    response: str = Field(..., description="Assistant reply")
    relevant_memories: List[str] = Field(default_factory=list, description="Memories used in the prompt")
    turn_count: int = Field(..., description="Completed user turns, including this one")
    run_flash: bool = Field(..., description="Whether flash extraction ran")
    run_long_term: bool = Field(..., description="Whether long-term consolidation ran")
    new_flash_memories: List[str] = Field(default_factory=list, description="Facts extracted this turn")
    new_long_term_memories: List[str] = Field(default_factory=list, description="Summaries written this turn")
    run_id: str = Field(..., description="Turn run identifier")
    timings: Dict[str, float] = Field(default_factory=dict, description="Step timings in milliseconds")


class MemoryItem(BaseModel):
    """A stored memory without its embedding."""

    text: str
    topics: List[str] = Field(default_factory=list)
    created_at: float
    embedded: bool = Field(..., description="Whether the record has an embedding")


class HistoryItem(BaseModel):
    """A stored dialogue event."""

    role: str
    content: str
    agent_name: Optional[str] = None


class MemoryResponse(BaseModel):
    """Response model for GET /api/memory/{user_id}."""

    user_id: str
    flash_memory: List[MemoryItem] = Field(default_factory=list)
    long_term_memory: List[MemoryItem] = Field(default_factory=list)
    conversation_history: List[HistoryItem] = Field(default_factory=list)


class DeleteMemoryResponse(BaseModel):
    """Response after deleting a user's memory."""

    deleted: bool = Field(..., description="Whether a snapshot was deleted")
    message: str = Field(..., description="Status message")


class HealthResponse(BaseModel):
    """Response model for /health endpoint."""

    status: str = Field(..., description="Service status")
    components: Dict[str, bool] = Field(default_factory=dict, description="Component availability")
