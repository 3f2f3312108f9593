"""
Memory subsystem for conversational agents.

Provides:
- Memory snapshot model and tagged stage outputs
- Similarity-based recall for the reply prompt
- Turn scheduling for extraction and consolidation
- Flash (atomic fact) extraction
- Long-term consolidation
- Merge with deduplication and truncation
- Per-user snapshot storage
"""

from .schemas import (
    CONVERSATION_SUMMARY_TOPIC,
    InteractionEvent,
    MemoryRecord,
    MemorySnapshot,
    MemoryUpdaterRequest,
    TurnInput,
    HistoryUpdate,
    FlashResult,
    LongTermResult,
    SnapshotPayload,
    StageOutput,
    parse_stage_output,
)
from .errors import MemoryPipelineError, MissingStateError, DegradedMergeWarning
from .similarity import cosine_similarity
from .recall import MemoryRetriever, format_memory_context
from .scheduler import TurnScheduler, extract_response_text
from .flash import (
    FLASH_NO_OP,
    FlashCandidate,
    FlashParseOutcome,
    FlashPromptBuilder,
    FlashResponseParser,
    FlashExtractor,
    parse_flash_output,
    drop_batch_duplicates,
)
from .summarizer import LongTermPromptBuilder, LongTermResponseParser, LongTermConsolidator
from .merge import MergeEngine, merge_and_dedup
from .conversation import ConversationPromptBuilder
from .store import SnapshotStore

__all__ = [
    "CONVERSATION_SUMMARY_TOPIC",
    "InteractionEvent",
    "MemoryRecord",
    "MemorySnapshot",
    "MemoryUpdaterRequest",
    "TurnInput",
    "HistoryUpdate",
    "FlashResult",
    "LongTermResult",
    "SnapshotPayload",
    "StageOutput",
    "parse_stage_output",
    "MemoryPipelineError",
    "MissingStateError",
    "DegradedMergeWarning",
    "cosine_similarity",
    "MemoryRetriever",
    "format_memory_context",
    "TurnScheduler",
    "extract_response_text",
    "FLASH_NO_OP",
    "FlashCandidate",
    "FlashParseOutcome",
    "FlashPromptBuilder",
    "FlashResponseParser",
    "FlashExtractor",
    "parse_flash_output",
    "drop_batch_duplicates",
    "LongTermPromptBuilder",
    "LongTermResponseParser",
    "LongTermConsolidator",
    "MergeEngine",
    "merge_and_dedup",
    "ConversationPromptBuilder",
    "SnapshotStore",
]
