"""Generation module for the memory pipeline."""
from .prompts import (
    FLASH_MEMORY_PROMPT_TEMPLATE, LONG_TERM_PROMPT_TEMPLATE,
    CONVERSATION_PROMPT_TEMPLATE, render_template
)
from .generator import (
    GenerationConfig, GeneratedResponse,
    BaseGenerator, MockGenerator
)
from .ollama_generator import OllamaGenerator

__all__ = [
    # Prompts
    'FLASH_MEMORY_PROMPT_TEMPLATE', 'LONG_TERM_PROMPT_TEMPLATE',
    'CONVERSATION_PROMPT_TEMPLATE', 'render_template',

    # Generation
    'GenerationConfig', 'GeneratedResponse',
    'BaseGenerator', 'MockGenerator', 'OllamaGenerator'
]
