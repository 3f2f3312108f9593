"""
Ollama generator adapter for local LLM inference.

Implements BaseGenerator interface for Ollama REST API.
"""

import requests
import time
from typing import Optional
from dialog_memory.generation.generator import (
    BaseGenerator,
    GeneratedResponse,
    GenerationConfig
)


class OllamaGenerator(BaseGenerator):
    """
    Generator that uses Ollama for local LLM inference.

    Ollama must be running locally (default: http://localhost:11434).
    Failures surface as RuntimeError; the memory stages do not retry.
    """

    def __init__(
        self,
        model: str = "llama3",
        base_url: str = "http://localhost:11434",
        timeout: int = 60,
        check_availability: bool = True
    ):
        """
        Initialize Ollama generator.

        Args:
            model: Ollama model name (e.g., "llama3", "mistral", "phi")
            base_url: Ollama API base URL
            timeout: Request timeout in seconds
            check_availability: Ping the server before first use

        Raises:
            RuntimeError: If Ollama server is not reachable
        """
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        if check_availability and not self._check_availability():
            raise RuntimeError(
                f"Ollama not reachable at {self.base_url}. "
                f"Please start Ollama with 'ollama serve' or check the URL."
            )

    def _check_availability(self) -> bool:
        """Check if Ollama server is running."""
        try:
            response = requests.get(
                f"{self.base_url}/api/tags",
                timeout=5
            )
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False

    def is_available(self) -> bool:
        """Check if the generator is available and ready to use."""
        return self._check_availability()

    def _payload(self, prompt: str, config: Optional[GenerationConfig]) -> dict:
        config = config or GenerationConfig()
        return {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": config.temperature,
                "num_predict": config.max_new_tokens,
                "top_p": config.top_p,
                "top_k": config.top_k,
            }
        }

    def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None
    ) -> GeneratedResponse:
        """
        Generate text using Ollama.

        Args:
            prompt: Input prompt
            config: Generation configuration

        Returns:
            GeneratedResponse with metadata

        Raises:
            RuntimeError: If generation fails
        """
        start_time = time.time()

        try:
            response = requests.post(
                f"{self.base_url}/api/generate",
                json=self._payload(prompt, config),
                timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            raise RuntimeError(
                f"Ollama request timed out after {self.timeout}s. "
                f"Try a shorter prompt or increase timeout."
            )
        except requests.exceptions.RequestException as e:
            raise RuntimeError(
                f"Ollama request failed: {str(e)}. "
                f"Check if Ollama is running at {self.base_url}."
            )

        if response.status_code != 200:
            raise RuntimeError(
                f"Ollama API returned status {response.status_code}: {response.text}"
            )

        result = response.json()
        response_text = result.get("response", "").strip()

        return GeneratedResponse(
            text=response_text,
            model_used=self.model,
            prompt_length=len(prompt),
            response_length=len(response_text),
            processing_time=time.time() - start_time
        )

    def __repr__(self) -> str:
        return f"OllamaGenerator(model='{self.model}', base_url='{self.base_url}')"
