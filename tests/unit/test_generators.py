"""
Unit tests for generators.

Tests:
- MockGenerator scripted / keyword responses and prompt recording
- OllamaGenerator generate() (mocked HTTP)
"""

import pytest
import requests
from unittest.mock import patch

from dialog_memory.generation.generator import GenerationConfig, MockGenerator
from dialog_memory.generation.ollama_generator import OllamaGenerator
from dialog_memory.generation.prompts import render_template


class TestMockGenerator:
    """Test MockGenerator response selection."""

    def test_scripted_list_in_order(self):
        gen = MockGenerator(scripted=["first", "second"])

        assert gen.generate("a").text == "first"
        assert gen.generate("b").text == "second"
        assert gen.generate("c").text == MockGenerator.DEFAULT_RESPONSE

    def test_scripted_string_repeats(self):
        gen = MockGenerator(scripted="always")

        assert [gen.generate(p).text for p in "abc"] == ["always"] * 3

    def test_keyword_responses(self):
        gen = MockGenerator(keyword_responses={"JSON": "[]", "summary": "A summary."})

        assert gen.generate("Answer with a json list").text == "[]"
        assert gen.generate("Write the Summary:").text == "A summary."
        assert gen.generate("hello").text == MockGenerator.DEFAULT_RESPONSE

    def test_records_prompts(self):
        gen = MockGenerator()
        gen.generate("one")
        gen.generate("two")

        assert gen.prompts == ["one", "two"]


class TestOllamaGenerator:
    """Test OllamaGenerator with mocked HTTP."""

    @pytest.fixture
    def gen(self):
        with patch("requests.get") as mock_get:
            mock_get.return_value.status_code = 200
            return OllamaGenerator(model="llama3")

    def test_unreachable_server_raises(self):
        with patch("requests.get", side_effect=requests.exceptions.ConnectionError("refused")):
            with pytest.raises(RuntimeError, match="not reachable"):
                OllamaGenerator()

    def test_skip_availability_check(self):
        with patch("requests.get") as mock_get:
            OllamaGenerator(check_availability=False)
            mock_get.assert_not_called()

    @patch("requests.post")
    def test_generate(self, mock_post, gen):
        mock_post.return_value.status_code = 200
        mock_post.return_value.json.return_value = {"response": "  Hello there.  "}

        result = gen.generate("Say hi", GenerationConfig(temperature=0.2, max_new_tokens=50))

        assert result.text == "Hello there."
        assert result.model_used == "llama3"
        payload = mock_post.call_args[1]["json"]
        assert payload["stream"] is False
        assert payload["options"]["temperature"] == 0.2
        assert payload["options"]["num_predict"] == 50
        assert mock_post.call_args[0][0] == "http://localhost:11434/api/generate"

    @patch("requests.post")
    def test_generate_error_status(self, mock_post, gen):
        mock_post.return_value.status_code = 500
        mock_post.return_value.text = "boom"

        with pytest.raises(RuntimeError, match="status 500"):
            gen.generate("p")

    @patch("requests.post", side_effect=requests.exceptions.Timeout())
    def test_generate_timeout(self, mock_post, gen):
        with pytest.raises(RuntimeError, match="timed out"):
            gen.generate("p")


class TestRenderTemplate:
    """Test Jinja2 prompt rendering."""

    def test_renders_variables(self):
        assert render_template("Hi {{ name }}!", {"name": "Ada"}) == "Hi Ada!"

    def test_undefined_variable_raises(self):
        from jinja2 import UndefinedError

        with pytest.raises(UndefinedError):
            render_template("Hi {{ name }}!", {})
