"""
Long-term memory consolidation.

Rewrites the running long-term summary from the previous summaries and the
recent dialogue. The whole model output becomes one new long-term record.
"""

import logging
import time
from typing import Optional

from dialog_memory.config.settings import LongTermCfg
from dialog_memory.embedding.encoders import BaseEmbedder
from dialog_memory.generation.generator import BaseGenerator, GenerationConfig
from dialog_memory.generation.prompts import render_template
from dialog_memory.telemetry import ObservabilityContext
from .flash import render_dialogue
from .schemas import CONVERSATION_SUMMARY_TOPIC, LongTermResult, MemoryRecord, MemoryUpdaterRequest


logger = logging.getLogger(__name__)


class LongTermPromptBuilder:
    """Builds the consolidation prompt."""

    def __init__(self, cfg: Optional[LongTermCfg] = None):
        self.cfg = cfg or LongTermCfg()

    def build(self, request: MemoryUpdaterRequest, obs: Optional[ObservabilityContext] = None) -> str:
        """
        Render the prompt.

        Args:
            request: Updated history and pre-turn snapshot
            obs: Observability context

        Returns:
            Rendered prompt (always non-empty; consolidation never skips)
        """
        previous_long_term = "\n\n".join(
            record.text for record in request.memory_snapshot.long_term_memory
        )

        limit = self.cfg.max_history_to_process
        recent = request.event_history[-limit:]

        prompt = render_template(
            self.cfg.prompt_template,
            {
                "topic": CONVERSATION_SUMMARY_TOPIC,
                "dialogue_lines": render_dialogue(recent),
                "previous_long_term": previous_long_term,
            },
        )

        if obs is not None:
            obs.log_prompt("long_term", prompt)
        return prompt


class LongTermResponseParser:
    """Wraps the model output as a single embedded long-term record."""

    def __init__(self, embedder: BaseEmbedder):
        self.embedder = embedder

    def parse(self, raw: str, obs: Optional[ObservabilityContext] = None) -> LongTermResult:
        text = (raw or "").strip()
        if not text:
            logger.debug("No new long-term memories created after parsing")
            return LongTermResult(new_long_term_memory=[])

        embeddings = self.embedder.embed_batch([text])
        record = MemoryRecord(
            text=text,
            embedding=list(embeddings[0]) if embeddings else [],
            topics=[CONVERSATION_SUMMARY_TOPIC],
            created_at=time.time(),
        )

        logger.info("Created long-term memory (%d chars)", len(text))
        if obs is not None:
            obs.log_memory("long_term", [record])

        return LongTermResult(new_long_term_memory=[record])


class LongTermConsolidator:
    """
    Long-term memory stage: prompt, generate, parse.

    Generator and embedder errors propagate to the caller.
    """

    def __init__(
        self,
        generator: BaseGenerator,
        embedder: BaseEmbedder,
        cfg: Optional[LongTermCfg] = None,
        generation_config: Optional[GenerationConfig] = None,
    ):
        self.cfg = cfg or LongTermCfg()
        self.generator = generator
        self.generation_config = generation_config or GenerationConfig()
        self.prompt_builder = LongTermPromptBuilder(self.cfg)
        self.parser = LongTermResponseParser(embedder)

    def run(self, request: MemoryUpdaterRequest, obs: Optional[ObservabilityContext] = None) -> LongTermResult:
        prompt = self.prompt_builder.build(request, obs)
        response = self.generator.generate(prompt, self.generation_config)
        return self.parser.parse(response.text, obs)
