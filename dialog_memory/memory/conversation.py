"""Reply prompt construction from recent history and recalled memories."""

import logging
from typing import List, Optional

from dialog_memory.config.settings import ConversationCfg
from dialog_memory.generation.prompts import render_template
from dialog_memory.telemetry import CONVERSATION_PROMPT, ObservabilityContext
from .flash import render_dialogue
from .recall import format_memory_context
from .schemas import InteractionEvent


logger = logging.getLogger(__name__)


class ConversationPromptBuilder:
    """
    Builds the prompt for the assistant's reply.

    The rendered system prompt is followed by the user's query and an open
    ``assistant:`` line for the model to complete.
    """

    def __init__(self, cfg: Optional[ConversationCfg] = None):
        self.cfg = cfg or ConversationCfg()

    def build_system_prompt(self, history: List[InteractionEvent], memories: List[str]) -> str:
        """
        Render the system prompt.

        Args:
            history: Prior conversation (the new query not included)
            memories: Recalled memory texts

        Returns:
            System prompt; the memory block is omitted when there are no memories
        """
        limit = self.cfg.max_history_to_process
        recent = history[-limit:]

        return render_template(
            self.cfg.prompt_template,
            {
                "conversation_history": render_dialogue(recent),
                "memory_context": format_memory_context(memories),
            },
        )

    def build(
        self,
        query: str,
        history: List[InteractionEvent],
        memories: List[str],
        obs: Optional[ObservabilityContext] = None,
    ) -> str:
        system_prompt = self.build_system_prompt(history, memories)
        prompt = f"{system_prompt.rstrip()}\n\nuser: {query}\nassistant:"

        if obs is not None:
            obs.log_prompt(CONVERSATION_PROMPT, prompt)
        return prompt
