"""Prompt templates and rendering for the memory pipeline."""
from __future__ import annotations
from typing import Any, Dict

from jinja2 import Environment, StrictUndefined


FLASH_MEMORY_PROMPT_TEMPLATE = """You extract durable facts about the user from a conversation.

Read the dialogue below and decide which statements are worth remembering in
future conversations: preferences, personal details, plans, relationships and
recurring topics. Ignore small talk and anything the assistant said about itself.

Answer with a JSON list. Each item must have exactly these keys:
- "important": true if the fact is worth remembering, otherwise false
- "memory": one short sentence stating the fact
- "topic": a one or two word label for the fact, or "n/a"

If nothing is worth remembering, answer with [].

Dialogue:
{{ dialogue_history }}

JSON:"""


LONG_TERM_PROMPT_TEMPLATE = """You maintain a long-term summary of everything known about the user.

Topic: {{ topic }}

{% if previous_long_term %}Previous long-term summary:
{{ previous_long_term }}

{% endif %}Recent dialogue:
{{ dialogue_lines }}

Write an updated summary in plain prose. Keep stable facts from the previous
summary, add what the recent dialogue reveals and drop anything contradicted.
Do not add commentary before or after the summary.

Summary:"""


CONVERSATION_PROMPT_TEMPLATE = """You are a friendly assistant holding an ongoing conversation with the user.
Use what you remember about the user when it is relevant, but never invent memories.
{% if memory_context %}
{{ memory_context }}
{% endif %}{% if conversation_history %}
Conversation so far:
{{ conversation_history }}
{% endif %}"""


_env = Environment(undefined=StrictUndefined, keep_trailing_newline=True, autoescape=False)


def render_template(template: str, variables: Dict[str, Any]) -> str:
    """
    Render a Jinja2 template string.

    Undefined variables raise ``jinja2.UndefinedError``; callers pass every
    variable the template references (empty strings for absent blocks).

    Args:
        template: Template source
        variables: Template variables

    Returns:
        Rendered text
    """
    return _env.from_string(template).render(**variables)
