"""
Unit tests for flash memory extraction.

Tests:
- parse_flash_output(): JSON tier, pattern fallback, caps
- FlashPromptBuilder: history window and no-op sentinel
- FlashResponseParser: embedding and intra-batch dedup
- FlashExtractor: end-to-end with MockGenerator
"""
import json
import pytest

from dialog_memory.config.settings import FlashCfg
from dialog_memory.generation.generator import MockGenerator
from dialog_memory.memory.flash import (
    FLASH_NO_OP,
    FlashExtractor,
    FlashPromptBuilder,
    FlashResponseParser,
    drop_batch_duplicates,
    parse_flash_output,
)
from dialog_memory.memory.schemas import InteractionEvent, MemorySnapshot, MemoryUpdaterRequest


# ============================================================================
# Parsing
# ============================================================================

def test_parse_json_list():
    raw = json.dumps([
        {"important": True, "memory": "User likes jazz.", "topic": "music"},
        {"important": False, "memory": "User said hello.", "topic": "greeting"},
        {"important": True, "memory": "User works remotely.", "topic": "n/a"},
    ])

    outcome = parse_flash_output(raw)

    assert outcome.tier == "structured"
    assert [(c.text, c.topics) for c in outcome.candidates] == [
        ("User likes jazz.", ["music"]),
        ("User works remotely.", []),
    ]


def test_parse_json_single_object():
    outcome = parse_flash_output('{"important": true, "memory": "User has a cat."}')

    assert outcome.tier == "structured"
    assert [(c.text, c.topics) for c in outcome.candidates] == [("User has a cat.", [])]


def test_parse_strips_code_fences():
    raw = '```json\n[{"important": true, "memory": "User is vegetarian.", "topic": "food"}]\n```'

    outcome = parse_flash_output(raw)

    assert outcome.tier == "structured"
    assert outcome.candidates[0].text == "User is vegetarian."
    assert outcome.candidates[0].topics == ["food"]


def test_parse_json_skips_empty_or_invalid_items():
    raw = json.dumps([
        {"important": True, "memory": ""},
        {"important": True},
        {"important": True, "memory": 5},
        "not an object",
    ])

    outcome = parse_flash_output(raw)

    assert outcome.tier == "structured"
    assert outcome.candidates == []


def test_parse_pattern_fallback():
    raw = "Fact: likes jazz. Topic: music - Fact: works remotely. Topic: career"

    outcome = parse_flash_output(raw)

    assert outcome.tier == "pattern"
    assert [(c.text, c.topics) for c in outcome.candidates] == [
        ("likes jazz", ["music"]),
        ("works remotely", ["career"]),
    ]


def test_parse_pattern_collapses_whitespace_and_ignores_case():
    raw = "fact:   plays\n  chess   topic: hobbies"

    outcome = parse_flash_output(raw)

    assert [(c.text, c.topics) for c in outcome.candidates] == [("plays chess", ["hobbies"])]


def test_parse_pattern_is_capped():
    raw = " - ".join(f"Fact: fact number {i}. Topic: t{i}" for i in range(6))

    assert len(parse_flash_output(raw).candidates) == 4
    assert len(parse_flash_output(raw, max_flash_memory=2).candidates) == 2


def test_parse_nothing_found():
    outcome = parse_flash_output("I could not find anything worth remembering.")

    assert outcome.tier == "none"
    assert outcome.candidates == []


def test_parse_blank():
    assert parse_flash_output("   ").tier == "none"


# ============================================================================
# Prompt builder
# ============================================================================

def test_prompt_uses_recent_history(sample_history):
    request = MemoryUpdaterRequest(event_history=sample_history, memory_snapshot=MemorySnapshot.empty())

    prompt = FlashPromptBuilder(FlashCfg(max_history_to_process=2)).build(request)

    assert "user: I love the food, especially pastel de nata." in prompt
    assert "assistant: Those are delicious!" in prompt
    assert "I just moved to Lisbon." not in prompt


def test_zero_history_window_uses_default(sample_history):
    request = MemoryUpdaterRequest(event_history=sample_history, memory_snapshot=MemorySnapshot.empty())

    prompt = FlashPromptBuilder(FlashCfg(max_history_to_process=0)).build(request)

    assert prompt != FLASH_NO_OP
    assert "I just moved to Lisbon." in prompt


def test_prompt_empty_history_is_sentinel():
    request = MemoryUpdaterRequest(event_history=[], memory_snapshot=MemorySnapshot.empty())

    assert FlashPromptBuilder().build(request) == FLASH_NO_OP


# ============================================================================
# Response parser
# ============================================================================

def test_sentinel_and_blank_produce_no_records(fake_embedder):
    embedder = fake_embedder(default=[1.0])
    parser = FlashResponseParser(embedder)

    assert parser.parse(FLASH_NO_OP).memory_records == []
    assert parser.parse("").memory_records == []
    assert embedder.calls == []


def test_records_embedded_in_one_batch(fake_embedder):
    embedder = fake_embedder({"likes jazz": [1.0, 0.0], "works remotely": [0.0, 1.0]})
    parser = FlashResponseParser(embedder)

    result = parser.parse("Fact: likes jazz. Topic: music - Fact: works remotely. Topic: career")

    assert embedder.calls == [["likes jazz", "works remotely"]]
    assert [r.text for r in result.memory_records] == ["likes jazz", "works remotely"]
    assert result.memory_records[0].embedding == [1.0, 0.0]
    assert result.memory_records[0].topics == ["music"]
    assert result.tier == "pattern"


def test_batch_dedup_keeps_later_duplicate(fake_embedder):
    embedder = fake_embedder({
        "User likes jazz.": [1.0, 0.0],
        "User enjoys jazz music.": [0.99, 0.05],
        "User has a dog.": [0.0, 1.0],
    })
    raw = json.dumps([
        {"important": True, "memory": "User likes jazz.", "topic": "music"},
        {"important": True, "memory": "User has a dog.", "topic": "pets"},
        {"important": True, "memory": "User enjoys jazz music.", "topic": "music"},
    ])

    result = FlashResponseParser(embedder).parse(raw)

    assert [r.text for r in result.memory_records] == ["User has a dog.", "User enjoys jazz music."]


def test_drop_batch_duplicates_ignores_unembedded(make_record):
    records = [make_record("a"), make_record("b")]

    assert drop_batch_duplicates(records, 0.9) == records


# ============================================================================
# Extractor
# ============================================================================

def test_extractor_runs_generation(sample_history, embedder):
    generator = MockGenerator(
        scripted='[{"important": true, "memory": "User lives in Lisbon.", "topic": "location"}]'
    )
    extractor = FlashExtractor(generator, embedder)
    request = MemoryUpdaterRequest(event_history=sample_history, memory_snapshot=MemorySnapshot.empty())

    result = extractor.run(request)

    assert len(generator.prompts) == 1
    assert "pastel de nata" in generator.prompts[0]
    assert [r.text for r in result.memory_records] == ["User lives in Lisbon."]
    assert result.memory_records[0].is_embedded


def test_extractor_skips_generation_without_history(embedder):
    generator = MockGenerator(scripted="should not be used")
    request = MemoryUpdaterRequest(event_history=[], memory_snapshot=MemorySnapshot.empty())

    result = FlashExtractor(generator, embedder).run(request)

    assert generator.prompts == []
    assert result.memory_records == []


def test_extractor_propagates_generator_errors(sample_history, embedder):
    class FailingGenerator(MockGenerator):
        def generate(self, prompt, config=None):
            raise RuntimeError("model offline")

    request = MemoryUpdaterRequest(event_history=sample_history, memory_snapshot=MemorySnapshot.empty())

    with pytest.raises(RuntimeError, match="model offline"):
        FlashExtractor(FailingGenerator(), embedder).run(request)
