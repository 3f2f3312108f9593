"""
Telemetry and logging for the memory pipeline.

An ``ObservabilityContext`` is created per turn and passed into each stage.
It carries the run id, a structlog logger bound to it, the rendered prompts
of the turn and per-step timings.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional

import structlog


EMBEDDING_PREVIEW = 5
CONVERSATION_PROMPT = "conversation"

# Used until configure_logging() runs, so events obey stdlib log levels
_STDLIB_PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.format_exc_info,
    structlog.processors.JSONRenderer(),
]


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure stdlib logging and the structlog processor chain.

    Called once by entry points (scripts, API startup), never on import.

    Args:
        level: Root log level name
        json_logs: Render JSON lines instead of the console renderer
    """
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format="%(message)s")

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def new_run_id() -> str:
    """Generate a new unique run ID."""
    return str(uuid.uuid4())


def abbreviate_records(records: Iterable[Any]) -> List[Dict[str, Any]]:
    """Dump memory records with embeddings cut to a short preview."""
    dumped = []
    for record in records:
        if isinstance(record, str):
            dumped.append({"text": record})
            continue
        data = record.model_dump(by_alias=True, exclude_none=True)
        embedding = data.get("embedding", [])
        if len(embedding) > EMBEDDING_PREVIEW:
            data["embedding"] = embedding[:EMBEDDING_PREVIEW] + [f"... ({len(embedding) - EMBEDDING_PREVIEW} more)"]
        dumped.append(data)
    return dumped


def _base_logger() -> Any:
    if structlog.is_configured():
        return structlog.get_logger("dialog_memory")
    return structlog.wrap_logger(
        logging.getLogger("dialog_memory"),
        processors=_STDLIB_PROCESSORS,
        wrapper_class=structlog.stdlib.BoundLogger,
    )


@dataclass
class ObservabilityContext:
    """Per-turn observability state handed to every stage."""

    run_id: str = field(default_factory=new_run_id)
    user_id: Optional[str] = None
    verbose: bool = False
    prompts: Dict[str, str] = field(default_factory=dict)
    timings: Dict[str, float] = field(default_factory=dict)
    logger: Any = None

    def __post_init__(self):
        if self.logger is None:
            self.logger = _base_logger().bind(
                run_id=self.run_id,
                user_id=self.user_id,
            )

    @property
    def last_prompt(self) -> Optional[str]:
        """The last rendered reply prompt of the turn."""
        return self.prompts.get(CONVERSATION_PROMPT)

    @contextmanager
    def step(self, name: str, **extra: Any) -> Iterator[None]:
        """
        Time a pipeline step and log it as ``step_executed``.

        Args:
            name: Step name (e.g., "retrieve", "flash")
            **extra: Extra fields for the log event
        """
        start = time.perf_counter()
        status = "ok"
        try:
            yield
        except Exception:
            status = "error"
            raise
        finally:
            ms = (time.perf_counter() - start) * 1000
            self.timings[name] = ms
            self.logger.info("step_executed", step=name, duration_ms=round(ms, 2), status=status, **extra)

    def log_prompt(self, name: str, prompt: str) -> None:
        """Keep the rendered prompt under ``name`` and log it (full text only when verbose)."""
        self.prompts[name] = prompt
        if self.verbose:
            self.logger.info("prompt_rendered", name=name, prompt=prompt)
        else:
            self.logger.debug("prompt_rendered", name=name, chars=len(prompt))

    def log_memory(self, kind: str, records: List[Any]) -> None:
        """Log newly created or retrieved memories."""
        if self.verbose:
            self.logger.info("memory", kind=kind, records=abbreviate_records(records))
        else:
            self.logger.debug("memory", kind=kind, count=len(records))
