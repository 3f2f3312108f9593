"""
Unit tests for CachingEmbedder and stable hashing.
"""
import numpy as np
import pytest

from dialog_memory.persist.embedding_cache import CachingEmbedder
from dialog_memory.persist.hashing import stable_hash


def test_stable_hash_is_order_independent():
    assert stable_hash({"b": 2, "a": 1}) == stable_hash({"a": 1, "b": 2})
    assert stable_hash("tea") != stable_hash("coffee")
    assert len(stable_hash(b"bytes")) == 64


def test_stable_hash_rejects_other_types():
    with pytest.raises(TypeError):
        stable_hash(3.14)


def test_misses_then_hits(kv, fake_embedder):
    inner = fake_embedder({"hello": [0.5, 0.25], "world": [1.0, 0.0]})
    embedder = CachingEmbedder(inner, kv)

    first = embedder.embed_batch(["hello", "world"])
    second = embedder.embed_batch(["hello", "world"])

    assert first == second == [[0.5, 0.25], [1.0, 0.0]]
    assert inner.calls == [["hello", "world"]]
    assert embedder.get_stats() == {"hits": 2, "misses": 2, "hit_rate": 0.5}


def test_only_misses_reach_inner_embedder(kv, fake_embedder):
    inner = fake_embedder(default=[1.0, 2.0])
    embedder = CachingEmbedder(inner, kv)

    embedder.embed("cached")
    embedder.embed_batch(["new one", "cached", "new two"])

    assert inner.calls == [["cached"], ["new one", "new two"]]


def test_results_keep_input_order(kv, fake_embedder):
    inner = fake_embedder({"a": [1.0], "b": [2.0], "c": [3.0]})
    embedder = CachingEmbedder(inner, kv)
    embedder.embed("b")

    assert embedder.embed_batch(["a", "b", "c"]) == [[1.0], [2.0], [3.0]]


def test_vectors_roundtrip_through_float32(kv, fake_embedder):
    inner = fake_embedder(default=[0.1, 0.2, 0.3])
    embedder = CachingEmbedder(inner, kv)

    fresh = embedder.embed("x")
    cached = embedder.embed("x")

    expected = np.asarray([0.1, 0.2, 0.3], dtype=np.float32).tolist()
    assert fresh == cached == expected


def test_cache_shared_across_instances(kv, fake_embedder):
    CachingEmbedder(fake_embedder(default=[1.0]), kv).embed("shared")

    inner = fake_embedder(default=[9.0])
    assert CachingEmbedder(inner, kv).embed("shared") == [1.0]
    assert inner.calls == []


def test_empty_batch(kv, fake_embedder):
    inner = fake_embedder()
    assert CachingEmbedder(inner, kv).embed_batch([]) == []
    assert inner.calls == []
