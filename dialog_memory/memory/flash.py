"""
Flash memory extraction.

Turns the recent dialogue into short atomic facts about the user. The model
is asked for a JSON list; when its output is not valid JSON, ``Fact: ...
Topic: ...`` lines are recovered with a pattern match instead.
"""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional

from dialog_memory.config.settings import FlashCfg
from dialog_memory.embedding.encoders import BaseEmbedder
from dialog_memory.generation.generator import BaseGenerator, GenerationConfig
from dialog_memory.generation.prompts import render_template
from dialog_memory.telemetry import ObservabilityContext
from .schemas import FlashResult, InteractionEvent, MemoryRecord, MemoryUpdaterRequest, ParseTier
from .similarity import cosine_similarity


logger = logging.getLogger(__name__)

# Stands in for a prompt when there is no dialogue to extract from
FLASH_NO_OP = "NO_OP_SKIP_TURN"

_FENCE_RE = re.compile(r"```json|```")
_WHITESPACE_RE = re.compile(r"\s+")
_FACT_TOPIC_RE = re.compile(
    r"Fact:\s*([\s\S]*?)\s*\.?\s*Topic:\s*(.*?)(?=\s-\sFact:|\n|$)",
    re.IGNORECASE,
)


@dataclass
class FlashCandidate:
    """A parsed fact before embedding."""
    text: str
    topics: List[str] = field(default_factory=list)


@dataclass
class FlashParseOutcome:
    """Parsed candidates and the parse tier that produced them."""
    candidates: List[FlashCandidate]
    tier: ParseTier


def render_dialogue(events: List[InteractionEvent]) -> str:
    """Render events as ``role: text`` lines."""
    return "\n".join(event.render() for event in events)


def _parse_structured(items: Any) -> List[FlashCandidate]:
    if not isinstance(items, list):
        items = [items]

    candidates = []
    for item in items:
        if not isinstance(item, dict):
            continue

        memory = item.get("memory")
        if not item.get("important") or not isinstance(memory, str) or not memory:
            continue

        topic = item.get("topic")
        topics = [str(topic)] if topic and topic != "n/a" else []
        candidates.append(FlashCandidate(text=memory, topics=topics))

    return candidates


def _parse_pattern(text: str, max_flash_memory: int) -> List[FlashCandidate]:
    normalized = _WHITESPACE_RE.sub(" ", text).strip()

    candidates = []
    for match in _FACT_TOPIC_RE.finditer(normalized):
        if len(candidates) >= max_flash_memory:
            break
        fact = match.group(1).strip()
        if not fact:
            continue
        candidates.append(FlashCandidate(text=fact, topics=[match.group(2).strip()]))

    return candidates


def parse_flash_output(text: str, max_flash_memory: int = 4) -> FlashParseOutcome:
    """
    Parse raw model output into fact candidates.

    The structured tier strips code fences and decodes JSON (one item or a
    list of ``{important, memory, topic}``). The pattern tier is only tried
    when decoding fails.

    Args:
        text: Raw model output
        max_flash_memory: Cap on pattern-tier matches

    Returns:
        FlashParseOutcome; tier is "structured" whenever the JSON decoded,
        "pattern" when the fallback found facts, otherwise "none"
    """
    if not text or not text.strip():
        return FlashParseOutcome(candidates=[], tier="none")

    cleaned = _FENCE_RE.sub("", text).strip()
    try:
        decoded = json.loads(cleaned)
    except json.JSONDecodeError:
        candidates = _parse_pattern(text, max_flash_memory)
        return FlashParseOutcome(candidates=candidates, tier="pattern" if candidates else "none")

    return FlashParseOutcome(candidates=_parse_structured(decoded), tier="structured")


def drop_batch_duplicates(records: List[MemoryRecord], threshold: float) -> List[MemoryRecord]:
    """
    Remove near-duplicates within one batch.

    A record is dropped when any later record in the batch is at least
    ``threshold`` similar, so the last of a group of duplicates survives.
    """
    kept = []
    for i, record in enumerate(records):
        if any(
            cosine_similarity(record.embedding, later.embedding) >= threshold
            for later in records[i + 1:]
        ):
            continue
        kept.append(record)
    return kept


class FlashPromptBuilder:
    """Builds the flash extraction prompt from recent history."""

    def __init__(self, cfg: Optional[FlashCfg] = None):
        self.cfg = cfg or FlashCfg()

    def build(self, request: MemoryUpdaterRequest, obs: Optional[ObservabilityContext] = None) -> str:
        """
        Render the prompt for the last ``max_history_to_process`` events.

        Returns:
            Rendered prompt, or ``FLASH_NO_OP`` when the history is empty
        """
        limit = self.cfg.max_history_to_process
        recent = request.event_history[-limit:]
        if not recent:
            return FLASH_NO_OP

        prompt = render_template(
            self.cfg.prompt_template,
            {"dialogue_history": render_dialogue(recent)},
        )

        if obs is not None:
            obs.log_prompt("flash", prompt)
        return prompt


class FlashResponseParser:
    """Turns raw model output into embedded, batch-deduplicated flash records."""

    def __init__(self, embedder: BaseEmbedder, cfg: Optional[FlashCfg] = None):
        self.embedder = embedder
        self.cfg = cfg or FlashCfg()

    def parse(self, raw: str, obs: Optional[ObservabilityContext] = None) -> FlashResult:
        """
        Parse, embed and deduplicate.

        Args:
            raw: Raw model output (or the no-op sentinel)
            obs: Observability context

        Returns:
            FlashResult with the surviving records and the parse tier
        """
        if not raw or not raw.strip() or FLASH_NO_OP in raw:
            return FlashResult(memory_records=[], tier="none")

        outcome = parse_flash_output(raw, self.cfg.max_flash_memory)
        if not outcome.candidates:
            logger.debug("No flash memories parsed (tier=%s)", outcome.tier)
            return FlashResult(memory_records=[], tier=outcome.tier)

        embeddings = self.embedder.embed_batch([c.text for c in outcome.candidates])
        now = time.time()
        records = [
            MemoryRecord(
                text=candidate.text,
                embedding=list(embedding),
                topics=candidate.topics,
                created_at=now,
            )
            for candidate, embedding in zip(outcome.candidates, embeddings)
        ]

        records = drop_batch_duplicates(records, self.cfg.similarity_threshold)

        if records:
            logger.info("Created %d flash memories (tier=%s)", len(records), outcome.tier)
            if obs is not None:
                obs.log_memory("flash", records)
        else:
            logger.debug("No new flash memories created after parsing")

        return FlashResult(memory_records=records, tier=outcome.tier)


class FlashExtractor:
    """
    Flash memory stage: prompt, generate, parse.

    Generation is skipped when the prompt builder returns the no-op sentinel.
    Generator and embedder errors propagate to the caller.
    """

    def __init__(
        self,
        generator: BaseGenerator,
        embedder: BaseEmbedder,
        cfg: Optional[FlashCfg] = None,
        generation_config: Optional[GenerationConfig] = None,
    ):
        self.cfg = cfg or FlashCfg()
        self.generator = generator
        self.generation_config = generation_config or GenerationConfig()
        self.prompt_builder = FlashPromptBuilder(self.cfg)
        self.parser = FlashResponseParser(embedder, self.cfg)

    def run(self, request: MemoryUpdaterRequest, obs: Optional[ObservabilityContext] = None) -> FlashResult:
        prompt = self.prompt_builder.build(request, obs)
        if prompt == FLASH_NO_OP:
            return self.parser.parse(FLASH_NO_OP, obs)

        response = self.generator.generate(prompt, self.generation_config)
        return self.parser.parse(response.text, obs)
