"""
Unit tests for long-term consolidation.
"""
import pytest

from dialog_memory.config.settings import LongTermCfg
from dialog_memory.generation.generator import MockGenerator
from dialog_memory.memory.schemas import MemorySnapshot, MemoryUpdaterRequest
from dialog_memory.memory.summarizer import (
    LongTermConsolidator,
    LongTermPromptBuilder,
    LongTermResponseParser,
)


def test_prompt_includes_previous_summaries_and_recent_dialogue(make_record, sample_history):
    snapshot = MemorySnapshot(long_term_memory=[
        make_record("Summary one.", [1.0]),
        make_record("Summary two.", [1.0]),
    ])
    request = MemoryUpdaterRequest(event_history=sample_history, memory_snapshot=snapshot, force_long_term=True)

    prompt = LongTermPromptBuilder(LongTermCfg(max_history_to_process=2)).build(request)

    assert "Topic: conversation_summary" in prompt
    assert "Summary one.\n\nSummary two." in prompt
    assert "user: I love the food, especially pastel de nata." in prompt
    assert "I just moved to Lisbon." not in prompt


def test_prompt_without_previous_summary(sample_history):
    request = MemoryUpdaterRequest(event_history=sample_history, memory_snapshot=MemorySnapshot.empty())

    prompt = LongTermPromptBuilder().build(request)

    assert "Previous long-term summary" not in prompt
    assert "user: I just moved to Lisbon." in prompt


def test_parser_wraps_whole_output(fake_embedder):
    embedder = fake_embedder(default=[0.5, 0.5])

    result = LongTermResponseParser(embedder).parse("  The user moved to Lisbon.\nThey love the food.  \n")

    assert len(result.new_long_term_memory) == 1
    record = result.new_long_term_memory[0]
    assert record.text == "The user moved to Lisbon.\nThey love the food."
    assert record.topics == ["conversation_summary"]
    assert record.embedding == [0.5, 0.5]
    assert embedder.calls == [["The user moved to Lisbon.\nThey love the food."]]


def test_parser_blank_output(fake_embedder):
    embedder = fake_embedder(default=[1.0])

    assert LongTermResponseParser(embedder).parse("   \n").new_long_term_memory == []
    assert embedder.calls == []


def test_consolidator_always_generates(embedder):
    generator = MockGenerator(scripted="The user is new here.")
    request = MemoryUpdaterRequest(event_history=[], memory_snapshot=MemorySnapshot.empty())

    result = LongTermConsolidator(generator, embedder).run(request)

    assert len(generator.prompts) == 1
    assert [r.text for r in result.new_long_term_memory] == ["The user is new here."]
