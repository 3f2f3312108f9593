"""Application settings and configuration schema."""

import os
from typing import Any, ClassVar, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from dialog_memory.generation.prompts import (
    CONVERSATION_PROMPT_TEMPLATE,
    FLASH_MEMORY_PROMPT_TEMPLATE,
    LONG_TERM_PROMPT_TEMPLATE,
)


class ModelsCfg(BaseModel):
    """
    Generation and embedding backends.

    The conversation model writes the replies; the memory model runs flash
    extraction and long-term consolidation.
    """
    conversation_provider: Literal["mock", "ollama"] = "mock"
    conversation_model: str = "llama3"
    conversation_temperature: float = 0.7

    memory_provider: Literal["mock", "ollama"] = "mock"
    memory_model: str = "llama3"
    memory_temperature: float = 0.7
    memory_max_new_tokens: int = 800

    ollama_base_url: str = "http://localhost:11434"
    timeout: int = 60

    embedder_provider: Literal["hashing", "sentence-transformers"] = "hashing"
    embedder_model: str = "BAAI/bge-large-en-v1.5"
    embedding_dim: int = 384

    class Config:
        frozen = True


class _CountsCfg(BaseModel):
    """
    Section whose count fields treat 0 as unset.

    A zero (e.g. ``FLASH_MEMORY_INTERVAL=0``) falls back to the field default;
    negative values are rejected.
    """
    zero_means_default: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def drop_zero_counts(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {
            key: value
            for key, value in data.items()
            if not (key in cls.zero_means_default and value in (0, "0"))
        }


class RetrievalCfg(BaseModel):
    """Memory recall for the conversation prompt."""
    similarity_threshold: float = 0.3
    max_context_items: int = 3

    class Config:
        frozen = True


class SchedulerCfg(_CountsCfg):
    """Turn intervals that trigger extraction and consolidation."""
    zero_means_default: ClassVar[Tuple[str, ...]] = ("flash_interval", "long_term_interval")

    flash_interval: int = Field(default=1, ge=1)
    long_term_interval: int = Field(default=10, ge=1)

    class Config:
        frozen = True


class FlashCfg(_CountsCfg):
    """Flash (atomic fact) extraction."""
    zero_means_default: ClassVar[Tuple[str, ...]] = ("max_history_to_process", "max_flash_memory")

    prompt_template: str = FLASH_MEMORY_PROMPT_TEMPLATE
    max_history_to_process: int = Field(default=10, ge=1)
    max_flash_memory: int = Field(default=4, ge=1)
    similarity_threshold: float = 0.9

    class Config:
        frozen = True


class LongTermCfg(_CountsCfg):
    """Long-term consolidation."""
    zero_means_default: ClassVar[Tuple[str, ...]] = ("max_history_to_process",)

    prompt_template: str = LONG_TERM_PROMPT_TEMPLATE
    max_history_to_process: int = Field(default=10, ge=1)

    class Config:
        frozen = True


class MergeCfg(BaseModel):
    """Snapshot merge, dedup and truncation limits."""
    similarity_threshold: float = 0.9
    max_flash_memories: int = 200
    max_long_term_memories: int = 200
    max_history_events: int = 500

    class Config:
        frozen = True


class ConversationCfg(_CountsCfg):
    """Reply prompt construction."""
    zero_means_default: ClassVar[Tuple[str, ...]] = ("max_history_to_process",)

    prompt_template: str = CONVERSATION_PROMPT_TEMPLATE
    max_history_to_process: int = Field(default=20, ge=1)

    class Config:
        frozen = True


class Paths(BaseModel):
    """File and directory paths configuration."""
    db_path: str = "data/memory/memory.db"

    class Config:
        frozen = True


# Environment variable -> (section, field)
_ENV_FIELDS = {
    "CONVERSATION_LLM_PROVIDER": ("models", "conversation_provider"),
    "CONVERSATION_LLM_MODEL": ("models", "conversation_model"),
    "MEMORY_LLM_PROVIDER": ("models", "memory_provider"),
    "MEMORY_LLM_MODEL": ("models", "memory_model"),
    "OLLAMA_BASE_URL": ("models", "ollama_base_url"),
    "EMBEDDER_PROVIDER": ("models", "embedder_provider"),
    "EMBEDDER_MODEL": ("models", "embedder_model"),
    "FLASH_MEMORY_INTERVAL": ("scheduler", "flash_interval"),
    "LONG_TERM_MEMORY_INTERVAL": ("scheduler", "long_term_interval"),
    "MAX_HISTORY_TURNS": ("conversation", "max_history_to_process"),
    "SIMILARITY_THRESHOLD": ("retrieval", "similarity_threshold"),
    "MAX_RETURNED_MEMORIES": ("retrieval", "max_context_items"),
    "RESULT_MERGE_SIMILARITY_THRESHOLD": ("merge", "similarity_threshold"),
    "RESULT_MERGE_MAX_FLASH_MEMORIES": ("merge", "max_flash_memories"),
    "RESULT_MERGE_MAX_LONG_TERM_MEMORIES": ("merge", "max_long_term_memories"),
    "RESULT_MERGE_MAX_HISTORY_EVENTS": ("merge", "max_history_events"),
    "MEMORY_DB_PATH": ("paths", "db_path"),
}


class Settings(BaseModel):
    """Main application settings."""
    models: ModelsCfg = ModelsCfg()
    retrieval: RetrievalCfg = RetrievalCfg()
    scheduler: SchedulerCfg = SchedulerCfg()
    flash: FlashCfg = FlashCfg()
    long_term: LongTermCfg = LongTermCfg()
    merge: MergeCfg = MergeCfg()
    conversation: ConversationCfg = ConversationCfg()
    paths: Paths = Paths()

    class Config:
        frozen = True

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Unset variables keep their defaults; values are validated by pydantic,
        so a malformed number raises ``ValidationError`` at startup.

        Args:
            environ: Mapping to read from (default: ``os.environ``)

        Returns:
            Frozen Settings instance
        """
        environ = os.environ if environ is None else environ

        sections: dict = {}
        for var, (section, field) in _ENV_FIELDS.items():
            value = environ.get(var)
            if value is None or value == "":
                continue
            sections.setdefault(section, {})[field] = value

        return cls(**sections)
