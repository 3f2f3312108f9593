"""
Turn scheduling.

Appends the latest exchange to the conversation history, counts completed
user turns and decides whether flash extraction and long-term consolidation
run this turn.
"""

import logging
from typing import Any, List, Optional

from dialog_memory.config.settings import SchedulerCfg
from dialog_memory.telemetry import ObservabilityContext
from .errors import MissingStateError
from .schemas import HistoryUpdate, InteractionEvent, TurnInput


logger = logging.getLogger(__name__)

USER_AGENT_NAME = "User"
ASSISTANT_AGENT_NAME = "Assistant"


def _get(candidate: Any, key: str) -> Any:
    if isinstance(candidate, dict):
        return candidate.get(key)
    return getattr(candidate, key, None)


def _candidate_text(candidate: Any) -> Optional[str]:
    """Pull reply text out of one response shape, or None if unrecognized."""
    if isinstance(candidate, str):
        return candidate

    for key in ("content", "response"):
        value = _get(candidate, key)
        if isinstance(value, str):
            return value

    # Chat-completion shape: choices[0].message.content
    choices = _get(candidate, "choices")
    if isinstance(choices, (list, tuple)) and choices:
        message = _get(choices[0], "message")
        if message is not None:
            value = _get(message, "content")
            if isinstance(value, str):
                return value

    value = _get(candidate, "text")
    if isinstance(value, str):
        return value

    return None


def extract_response_text(candidates: List[Any]) -> str:
    """
    Find the assistant reply among candidate response values.

    Accepts plain strings, objects or mappings with a string ``content`` or
    ``response``, chat-completion payloads and generator responses with
    ``text``.

    Args:
        candidates: Candidate values in arrival order

    Returns:
        The last non-blank reply, or an empty string
    """
    response = ""
    for candidate in candidates:
        text = _candidate_text(candidate)
        if text is not None and text.strip():
            response = text
    return response


class TurnScheduler:
    """
    Decides when the memory stages run.

    Flash extraction runs every ``flash_interval`` user turns and long-term
    consolidation every ``long_term_interval`` user turns.
    """

    def __init__(self, cfg: Optional[SchedulerCfg] = None):
        self.cfg = cfg or SchedulerCfg()

    def is_due(self, turn_count: int, interval: int) -> bool:
        return turn_count > 0 and interval > 0 and turn_count % interval == 0

    def update(
        self,
        turn_input: TurnInput,
        *responses: Any,
        obs: Optional[ObservabilityContext] = None,
    ) -> HistoryUpdate:
        """
        Record the turn and decide which stages run.

        Args:
            turn_input: Query, pre-turn snapshot and prior history
            *responses: Candidate assistant replies, in arrival order
            obs: Observability context

        Returns:
            HistoryUpdate carrying the new history and the decision

        Raises:
            MissingStateError: If no snapshot was supplied
        """
        if turn_input.snapshot is None:
            raise MissingStateError("scheduler")

        history: List[InteractionEvent] = list(turn_input.history)
        history.append(
            InteractionEvent(role="user", content=turn_input.query, agent_name=USER_AGENT_NAME)
        )

        response = extract_response_text(list(responses))
        if response:
            history.append(
                InteractionEvent(role="assistant", content=response, agent_name=ASSISTANT_AGENT_NAME)
            )

        turn_count = sum(1 for event in history if event.role == "user")
        run_flash = self.is_due(turn_count, self.cfg.flash_interval)
        run_long_term = self.is_due(turn_count, self.cfg.long_term_interval)

        logger.debug(
            "Turn %d: run_flash=%s run_long_term=%s", turn_count, run_flash, run_long_term
        )
        if obs is not None:
            obs.logger.info(
                "turn_scheduled",
                turn_count=turn_count,
                run_flash=run_flash,
                run_long_term=run_long_term,
            )

        return HistoryUpdate(
            event_history=history,
            memory_snapshot=turn_input.snapshot,
            force_long_term=run_long_term,
            response=response,
            run_flash=run_flash,
            run_long_term=run_long_term,
            turn_count=turn_count,
        )
