"""
Snapshot merge.

Folds the outputs of one turn into the next memory snapshot: new flash and
long-term records are appended unless they duplicate a record already kept,
then every collection is cut back to its most recent entries.
"""

import logging
from typing import Any, List, Optional

from dialog_memory.config.settings import MergeCfg
from dialog_memory.telemetry import ObservabilityContext
from .errors import DegradedMergeWarning
from .schemas import (
    FlashResult,
    HistoryUpdate,
    InteractionEvent,
    LongTermResult,
    MemoryRecord,
    MemorySnapshot,
    SnapshotPayload,
    parse_stage_output,
)
from .similarity import cosine_similarity


logger = logging.getLogger(__name__)


def merge_and_dedup(
    existing: List[MemoryRecord],
    incoming: List[MemoryRecord],
    threshold: float,
) -> List[MemoryRecord]:
    """
    Append incoming records that are not near-duplicates.

    Each incoming record is compared with the existing records and with the
    incoming records accepted before it; the first one of a duplicate group
    is kept. Records without an embedding never count as duplicates.

    Args:
        existing: Records already in the snapshot (kept as-is)
        incoming: New records in creation order
        threshold: Similarity at or above which a record is a duplicate

    Returns:
        New list: existing records followed by the accepted incoming ones
    """
    merged = list(existing)

    for record in incoming:
        if not record.is_embedded:
            merged.append(record)
            continue

        is_duplicate = any(
            kept.is_embedded and cosine_similarity(kept.embedding, record.embedding) >= threshold
            for kept in merged
        )
        if not is_duplicate:
            merged.append(record)

    return merged


def _tail(items: list, limit: int) -> list:
    if limit <= 0:
        return []
    return items[-limit:]


class MergeEngine:
    """Combines stage outputs with the pre-turn snapshot."""

    def __init__(self, cfg: Optional[MergeCfg] = None):
        self.cfg = cfg or MergeCfg()

    def merge(self, *outputs: Any, obs: Optional[ObservabilityContext] = None) -> MemorySnapshot:
        """
        Build the next snapshot from this turn's stage outputs.

        Outputs may arrive in any order. The snapshot carried by a history
        update wins over a bare snapshot; when several outputs of the same
        kind arrive, the last one is used. Skipped stages simply contribute
        nothing.

        Args:
            *outputs: Stage outputs (models or loose dicts, see
                ``parse_stage_output``); ``None`` entries are ignored
            obs: Observability context

        Returns:
            The merged snapshot

        Raises:
            ValueError: If an output matches no known stage output shape
        """
        history_update: Optional[HistoryUpdate] = None
        bare_snapshot: Optional[MemorySnapshot] = None
        new_flash: List[MemoryRecord] = []
        new_long_term: List[MemoryRecord] = []

        for value in outputs:
            if value is None:
                continue

            output = parse_stage_output(value)
            if isinstance(output, HistoryUpdate):
                history_update = output
            elif isinstance(output, FlashResult):
                new_flash = list(output.memory_records)
            elif isinstance(output, LongTermResult):
                new_long_term = list(output.new_long_term_memory)
            elif isinstance(output, SnapshotPayload):
                bare_snapshot = output.snapshot

        if history_update is not None and "memory_snapshot" in history_update.model_fields_set:
            snapshot = history_update.memory_snapshot
        elif bare_snapshot is not None:
            snapshot = bare_snapshot
        else:
            logger.warning(
                "Missing original snapshot during merge; starting from an empty one",
                extra={"category": DegradedMergeWarning},
            )
            snapshot = MemorySnapshot.empty()

        history: List[InteractionEvent] = (
            list(history_update.event_history)
            if history_update is not None
            else list(snapshot.conversation_history)
        )

        merged_flash = _tail(
            merge_and_dedup(snapshot.flash_memory, new_flash, self.cfg.similarity_threshold),
            self.cfg.max_flash_memories,
        )
        merged_long_term = _tail(
            merge_and_dedup(snapshot.long_term_memory, new_long_term, self.cfg.similarity_threshold),
            self.cfg.max_long_term_memories,
        )
        merged_history = _tail(history, self.cfg.max_history_events)

        logger.debug(
            "Turn merged: new flash=%d, new long-term=%d, totals flash=%d long-term=%d history=%d",
            len(new_flash),
            len(new_long_term),
            len(merged_flash),
            len(merged_long_term),
            len(merged_history),
        )
        if obs is not None:
            obs.logger.info(
                "memory_merged",
                flash_total=len(merged_flash),
                long_term_total=len(merged_long_term),
                history_events=len(merged_history),
            )

        return MemorySnapshot(
            flash_memory=merged_flash,
            long_term_memory=merged_long_term,
            conversation_history=merged_history,
        )
