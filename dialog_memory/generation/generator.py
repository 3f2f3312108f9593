"""Text generation interface used by the memory stages."""
from __future__ import annotations
from typing import Dict, List, Optional, Union
from dataclasses import dataclass
from abc import ABC, abstractmethod
import time


@dataclass
class GenerationConfig:
    """Configuration for text generation."""
    max_new_tokens: int = 800
    temperature: float = 0.7
    top_p: float = 0.9
    top_k: int = 50


@dataclass
class GeneratedResponse:
    """Container for generated response with metadata."""
    text: str
    model_used: str
    prompt_length: int
    response_length: int
    processing_time: float = 0.0


class BaseGenerator(ABC):
    """Abstract base class for text generators."""

    @abstractmethod
    def generate(self, prompt: str, config: Optional[GenerationConfig] = None) -> GeneratedResponse:
        """Generate text based on the given prompt."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the generator is available and ready to use."""
        pass


class MockGenerator(BaseGenerator):
    """
    Mock generator for tests and offline runs.

    Responses are taken from ``scripted`` in order when given (a string is
    returned for every call), otherwise chosen by the first keyword found in
    the prompt. Every prompt is recorded in ``prompts``.
    """

    DEFAULT_RESPONSE = "Thanks for telling me. What else is on your mind?"

    def __init__(
        self,
        scripted: Optional[Union[str, List[str]]] = None,
        keyword_responses: Optional[Dict[str, str]] = None,
    ):
        self.scripted = [scripted] if isinstance(scripted, str) else list(scripted or [])
        self._repeat = isinstance(scripted, str)
        self.keyword_responses = keyword_responses or {}
        self.prompts: List[str] = []

    def generate(self, prompt: str, config: Optional[GenerationConfig] = None) -> GeneratedResponse:
        """Return the next scripted response or a keyword match."""
        start_time = time.time()
        self.prompts.append(prompt)

        if self.scripted:
            response_text = self.scripted[0] if self._repeat else self.scripted.pop(0)
        else:
            prompt_lower = prompt.lower()
            response_text = self.DEFAULT_RESPONSE
            for keyword, response in self.keyword_responses.items():
                if keyword.lower() in prompt_lower:
                    response_text = response
                    break

        return GeneratedResponse(
            text=response_text,
            model_used="mock_generator",
            prompt_length=len(prompt),
            response_length=len(response_text),
            processing_time=time.time() - start_time,
        )

    def is_available(self) -> bool:
        """Mock generator is always available."""
        return True
