"""
Memory recall by embedding similarity.

Scores every embedded flash and long-term record against the query and
returns the texts of the best matches.
"""

import logging
from typing import List, Optional, Tuple

from dialog_memory.config.settings import RetrievalCfg
from dialog_memory.embedding.encoders import BaseEmbedder
from dialog_memory.telemetry import ObservabilityContext
from .schemas import MemoryRecord, MemorySnapshot
from .similarity import cosine_similarity


logger = logging.getLogger(__name__)


class MemoryRetriever:
    """
    Retrieves relevant memories for a query.

    Scoring is plain cosine similarity between the query embedding and each
    stored record's embedding; records without an embedding are skipped.
    """

    def __init__(self, embedder: BaseEmbedder, cfg: Optional[RetrievalCfg] = None):
        """
        Initialize recall.

        Args:
            embedder: Embedder used for the query
            cfg: Threshold and result count
        """
        self.embedder = embedder
        self.cfg = cfg or RetrievalCfg()

    def score(self, query: str, snapshot: MemorySnapshot) -> List[Tuple[MemoryRecord, float]]:
        """
        Score all embedded records against the query.

        No embedding call is made for a blank query or when there is nothing
        to compare against.

        Args:
            query: Query text
            snapshot: Memory snapshot (not modified)

        Returns:
            (record, similarity) pairs above the threshold, best first; equal
            scores keep flash-then-long-term storage order
        """
        if not query or not query.strip():
            return []

        candidates = [
            record
            for record in list(snapshot.flash_memory) + list(snapshot.long_term_memory)
            if record.is_embedded
        ]

        if not candidates:
            logger.debug("No existing memories to search")
            return []

        query_vector = self.embedder.embed(query)
        if not query_vector:
            return []

        matches = [
            (record, cosine_similarity(query_vector, record.embedding))
            for record in candidates
        ]
        matches = [m for m in matches if m[1] >= self.cfg.similarity_threshold]

        # sorted() is stable, so ties keep their original order
        return sorted(matches, key=lambda m: m[1], reverse=True)

    def retrieve(
        self,
        query: str,
        snapshot: MemorySnapshot,
        obs: Optional[ObservabilityContext] = None,
    ) -> List[str]:
        """
        Retrieve the texts of the most relevant memories.

        Args:
            query: Query text
            snapshot: Memory snapshot
            obs: Observability context

        Returns:
            Up to ``max_context_items`` memory texts
        """
        relevant = [
            record.text
            for record, _ in self.score(query, snapshot)[: self.cfg.max_context_items]
        ]

        if relevant:
            logger.debug("Found %d relevant memories", len(relevant))
            if obs is not None:
                obs.log_memory("retrieval", relevant)
        else:
            logger.debug("No relevant memories found")

        return relevant


def format_memory_context(memories: List[str]) -> str:
    """
    Format retrieved memories for the conversation prompt.

    Returns:
        ``Relevant memories:`` block, or an empty string when there are none
    """
    if not memories:
        return ""

    lines = ["Relevant memories:"]
    lines.extend(f"- {memory}" for memory in memories)
    return "\n".join(lines)
