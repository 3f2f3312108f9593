"""
Conversation turn pipeline.

One turn runs:
    retrieve -> conversation prompt -> generate reply -> schedule
    -> flash / long-term (conditional, concurrent) -> merge

The pipeline never stores anything itself; ``MemorySession`` loads the
user's snapshot, runs the turn and saves the result.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dialog_memory.config.settings import ModelsCfg, Settings
from dialog_memory.embedding.encoders import BaseEmbedder, HashingEmbedder, SentenceTransformerEmbedder
from dialog_memory.generation.generator import BaseGenerator, GenerationConfig, MockGenerator
from dialog_memory.generation.ollama_generator import OllamaGenerator
from dialog_memory.memory.conversation import ConversationPromptBuilder
from dialog_memory.memory.errors import MissingStateError
from dialog_memory.memory.flash import FlashExtractor
from dialog_memory.memory.merge import MergeEngine
from dialog_memory.memory.recall import MemoryRetriever
from dialog_memory.memory.scheduler import TurnScheduler
from dialog_memory.memory.schemas import (
    FlashResult,
    HistoryUpdate,
    LongTermResult,
    MemorySnapshot,
    TurnInput,
)
from dialog_memory.memory.store import SnapshotStore
from dialog_memory.memory.summarizer import LongTermConsolidator
from dialog_memory.persist.embedding_cache import CachingEmbedder
from dialog_memory.persist.sqlite_store import KVStore
from dialog_memory.telemetry import ObservabilityContext


logger = logging.getLogger(__name__)


@dataclass
class TurnResult:
    """Outcome of one conversation turn."""
    response: str
    relevant_memories: List[str]
    decision: HistoryUpdate
    snapshot: MemorySnapshot
    flash: Optional[FlashResult] = None
    long_term: Optional[LongTermResult] = None
    run_id: str = ""
    timings: Dict[str, float] = field(default_factory=dict)


class ConversationPipeline:
    """
    Runs one conversation turn against a memory snapshot.

    ``generator`` writes the reply and ``memory_generator`` serves both memory
    stages (the reply generator when none is given). Flash extraction and
    long-term consolidation run on a two-worker thread pool when both are
    due; any stage error propagates and no snapshot is produced for the turn.
    """

    def __init__(
        self,
        generator: BaseGenerator,
        embedder: BaseEmbedder,
        settings: Optional[Settings] = None,
        memory_generator: Optional[BaseGenerator] = None,
    ):
        """
        Initialize pipeline.

        Args:
            generator: Text generator for replies
            embedder: Embedder for recall and new records
            settings: Pipeline settings (defaults if omitted)
            memory_generator: Text generator for the memory prompts
        """
        self.settings = settings or Settings()
        self.generator = generator
        self.memory_generator = memory_generator or generator
        self.embedder = embedder

        models = self.settings.models
        self.reply_config = GenerationConfig(temperature=models.conversation_temperature)
        self.memory_config = GenerationConfig(
            max_new_tokens=models.memory_max_new_tokens,
            temperature=models.memory_temperature,
        )

        self.retriever = MemoryRetriever(embedder, self.settings.retrieval)
        self.prompt_builder = ConversationPromptBuilder(self.settings.conversation)
        self.scheduler = TurnScheduler(self.settings.scheduler)
        self.flash = FlashExtractor(self.memory_generator, embedder, self.settings.flash, self.memory_config)
        self.long_term = LongTermConsolidator(
            self.memory_generator, embedder, self.settings.long_term, self.memory_config
        )
        self.merger = MergeEngine(self.settings.merge)

    def _run_flash(self, update: HistoryUpdate, obs: ObservabilityContext) -> FlashResult:
        with obs.step("flash"):
            return self.flash.run(update, obs)

    def _run_long_term(self, update: HistoryUpdate, obs: ObservabilityContext) -> LongTermResult:
        with obs.step("long_term"):
            return self.long_term.run(update, obs)

    def update_memory(
        self,
        update: HistoryUpdate,
        obs: Optional[ObservabilityContext] = None,
    ) -> TurnResult:
        """
        Run the due memory stages for a scheduled turn and merge.

        Args:
            update: Scheduler output
            obs: Observability context

        Returns:
            TurnResult without retrieval details
        """
        obs = obs or ObservabilityContext()

        flash_result: Optional[FlashResult] = None
        long_term_result: Optional[LongTermResult] = None

        if update.run_flash and update.run_long_term:
            with ThreadPoolExecutor(max_workers=2) as executor:
                flash_future = executor.submit(self._run_flash, update, obs)
                long_term_future = executor.submit(self._run_long_term, update, obs)
                flash_result = flash_future.result()
                long_term_result = long_term_future.result()
        elif update.run_flash:
            flash_result = self._run_flash(update, obs)
        elif update.run_long_term:
            long_term_result = self._run_long_term(update, obs)

        with obs.step("merge"):
            snapshot = self.merger.merge(update, flash_result, long_term_result, obs=obs)

        return TurnResult(
            response=update.response,
            relevant_memories=[],
            decision=update,
            snapshot=snapshot,
            flash=flash_result,
            long_term=long_term_result,
            run_id=obs.run_id,
            timings=dict(obs.timings),
        )

    def run_turn(
        self,
        query: str,
        snapshot: Optional[MemorySnapshot],
        obs: Optional[ObservabilityContext] = None,
    ) -> TurnResult:
        """
        Run a full conversation turn.

        Args:
            query: User message
            snapshot: Memory state before the turn (not modified)
            obs: Observability context (created if omitted)

        Returns:
            TurnResult with the reply and the next snapshot

        Raises:
            MissingStateError: If no snapshot is supplied
        """
        if snapshot is None:
            raise MissingStateError("pipeline")

        obs = obs or ObservabilityContext()

        with obs.step("retrieve"):
            memories = self.retriever.retrieve(query, snapshot, obs)

        prompt = self.prompt_builder.build(query, snapshot.conversation_history, memories, obs)

        with obs.step("generate"):
            reply = self.generator.generate(prompt, self.reply_config)

        with obs.step("schedule"):
            update = self.scheduler.update(
                TurnInput(query=query, snapshot=snapshot, history=snapshot.conversation_history),
                reply,
                obs=obs,
            )

        result = self.update_memory(update, obs)
        result.relevant_memories = memories
        return result


class MemorySession:
    """
    A user's conversation backed by a SnapshotStore.

    Each turn loads the stored snapshot, runs the pipeline and saves the
    new snapshot. If the turn fails, nothing is saved.
    """

    def __init__(self, pipeline: ConversationPipeline, store: SnapshotStore, user_id: str = "default"):
        self.pipeline = pipeline
        self.store = store
        self.user_id = user_id
        self.last_obs: Optional[ObservabilityContext] = None

    @property
    def snapshot(self) -> MemorySnapshot:
        return self.store.load(self.user_id)

    def chat(self, query: str, verbose: bool = False) -> TurnResult:
        """
        Run one turn for this user and persist the result.

        Args:
            query: User message
            verbose: Log full prompts and memory records

        Returns:
            TurnResult of the turn
        """
        obs = ObservabilityContext(user_id=self.user_id, verbose=verbose)
        self.last_obs = obs

        result = self.pipeline.run_turn(query, self.store.load(self.user_id), obs)

        if not self.store.save(self.user_id, result.snapshot):
            logger.warning("Memory for user %s was not saved", self.user_id)

        return result

    def reset(self) -> bool:
        """Forget everything stored for this user."""
        return self.store.delete(self.user_id)


def create_generator(models: ModelsCfg, purpose: str = "conversation") -> BaseGenerator:
    """
    Create the generator configured for replies or for the memory stages.

    Args:
        models: Model settings
        purpose: "conversation" or "memory"

    Raises:
        ValueError: For an unknown purpose
        RuntimeError: If Ollama is selected but not reachable
    """
    if purpose == "conversation":
        provider, model = models.conversation_provider, models.conversation_model
    elif purpose == "memory":
        provider, model = models.memory_provider, models.memory_model
    else:
        raise ValueError(f"Unknown generator purpose: {purpose}")

    if provider == "ollama":
        return OllamaGenerator(
            model=model,
            base_url=models.ollama_base_url,
            timeout=models.timeout,
        )
    return MockGenerator()


def create_embedder(models: ModelsCfg, kv: Optional[KVStore] = None) -> BaseEmbedder:
    """Create the configured embedder, cached in ``kv`` when given."""
    if models.embedder_provider == "sentence-transformers":
        embedder: BaseEmbedder = SentenceTransformerEmbedder(models.embedder_model)
    else:
        embedder = HashingEmbedder(dim=models.embedding_dim)

    if kv is not None:
        embedder = CachingEmbedder(embedder, kv)
    return embedder


def create_pipeline(
    settings: Optional[Settings] = None,
    kv: Optional[KVStore] = None,
    generator: Optional[BaseGenerator] = None,
    embedder: Optional[BaseEmbedder] = None,
    memory_generator: Optional[BaseGenerator] = None,
) -> ConversationPipeline:
    """
    Build a pipeline from settings.

    The reply and memory generators are built separately; when both are
    built from settings that name the same provider and model, one instance
    is shared.

    Args:
        settings: Settings (defaults if omitted)
        kv: KVStore for the embedding cache
        generator: Reply generator override
        embedder: Embedder override
        memory_generator: Memory-stage generator override

    Returns:
        ConversationPipeline
    """
    settings = settings or Settings()
    models = settings.models

    same_model = (models.memory_provider, models.memory_model) == (
        models.conversation_provider,
        models.conversation_model,
    )

    if generator is None:
        generator = create_generator(models, "conversation")
        if memory_generator is None and same_model:
            memory_generator = generator
    if memory_generator is None:
        memory_generator = create_generator(models, "memory")
    if embedder is None:
        embedder = create_embedder(models, kv)

    logger.info(
        "Creating pipeline: conversation=%s memory=%s embedder=%s",
        getattr(generator, "model", type(generator).__name__),
        getattr(memory_generator, "model", type(memory_generator).__name__),
        getattr(embedder, "model_name", type(embedder).__name__),
    )
    return ConversationPipeline(generator, embedder, settings, memory_generator=memory_generator)
