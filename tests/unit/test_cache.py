"""Tests for cache fingerprints and the cache layer."""

import pytest

from agentgate.agents import AgentBuilder
from agentgate.agents.definition import DEFAULT_CACHE_KEY_EXCLUDES
from agentgate.cache import CacheLayer, cache_parameters, fingerprint
from agentgate.models import ExecutionType, Result


@pytest.fixture
def agent():
    return AgentBuilder("SpeechAgent", ExecutionType.AUDIO).model("tts-1").cache_for(3600).build()


def key_for(agent, params, input="hello", model="tts-1"):
    return fingerprint("agentgate", agent, model, params, input)


class TestFingerprint:
    def test_shape(self, agent):
        key = key_for(agent, {"voice": "alloy"})

        prefix, digest = key.rsplit(":", 1)
        assert prefix == "agentgate:cache:audio:SpeechAgent:1.0:tts-1"
        assert len(digest) == 64

    def test_deterministic_and_order_independent(self, agent):
        assert key_for(agent, {"voice": "alloy", "speed": 1.0}) == key_for(agent, {"speed": 1.0, "voice": "alloy"})

    def test_output_relevant_changes_change_the_key(self, agent):
        base = key_for(agent, {"voice": "alloy"})

        assert key_for(agent, {"voice": "echo"}) != base
        assert key_for(agent, {"voice": "alloy"}, input="goodbye") != base
        assert key_for(agent, {"voice": "alloy"}, model="tts-1-hd") != base

    def test_version_changes_the_key(self, agent):
        bumped = AgentBuilder.inherit(agent, "SpeechAgent").version("2.0").build()

        assert key_for(bumped, {}) != key_for(agent, {})

    def test_default_excludes_ignore_tracing_ids(self, agent):
        assert key_for(agent, {"voice": "alloy", "trace_id": "a"}) == key_for(agent, {"voice": "alloy", "trace_id": "b"})

    def test_default_excludes_ignore_attachments(self, agent):
        assert "with" in DEFAULT_CACHE_KEY_EXCLUDES
        assert key_for(agent, {"voice": "alloy", "with": ["a.png"]}) == key_for(agent, {"voice": "alloy"})

    def test_include_list(self):
        agent = AgentBuilder("ImageAgent").model("dall-e-3").cache_for(60, include=["size"]).build()

        assert key_for(agent, {"size": "1024x1024", "user": "a"}) == key_for(agent, {"size": "1024x1024", "user": "b"})
        assert key_for(agent, {"size": "1024x1024"}) != key_for(agent, {"size": "512x512"})

    def test_exclude_list(self):
        agent = AgentBuilder("ImageAgent").model("dall-e-3").cache_for(60, exclude=["user"]).build()

        assert key_for(agent, {"user": "a"}) == key_for(agent, {"user": "b"})
        assert "trace_id" in agent.cache.key_excludes

    def test_cache_parameters_filters(self, agent):
        assert cache_parameters({"voice": "alloy", "request_id": "r1"}, agent.cache) == {"voice": "alloy"}


class TestCacheLayer:
    def test_miss_then_hit(self, store, agent):
        cache = CacheLayer(store, "agentgate")
        key = cache.fingerprint(agent, "tts-1", {}, "hello")
        assert cache.lookup(key) is None

        cache.store_result(key, Result(content="audio-bytes", model_id="tts-1", total_cost=0.01), ttl=3600)
        hit = cache.lookup(key)

        assert hit.content == "audio-bytes"
        assert hit.cached is True

    def test_entries_expire(self, store, clock, agent):
        cache = CacheLayer(store, "agentgate")
        cache.store_result("k", Result(content="x"), ttl=60)

        clock.advance(61)

        assert cache.lookup("k") is None

    def test_read_failure_is_a_miss(self, agent):
        class BrokenStore:
            supports_increment = True

            def read(self, key):
                raise ConnectionError("store down")

        assert CacheLayer(BrokenStore(), "agentgate").lookup("k") is None

    def test_write_failure_is_swallowed(self):
        class BrokenStore:
            supports_increment = True

            def write(self, key, value, ttl=None, unless_exist=False):
                raise ConnectionError("store down")

        CacheLayer(BrokenStore(), "agentgate").store_result("k", Result(content="x"), ttl=60)

    def test_invalid_entry_is_a_miss(self, store):
        store.write("k", {"cached": "not-a-bool-or-anything", "attempts_count": "many"})

        assert CacheLayer(store, "agentgate").lookup("k") is None

    def test_invalidate(self, store):
        cache = CacheLayer(store, "agentgate")
        cache.store_result("k", Result(content="x"), ttl=60)

        assert cache.invalidate("k") is True
        assert cache.lookup("k") is None
