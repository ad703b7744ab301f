"""Tests for core.compressor."""

import threading

from core.compressor import ContextCompressor
from core.memory import MemoryStore
from core.storage import InMemoryStorage


def _make_compressor(llm=None, **kwargs):
    calls = []

    def fake_llm(system_prompt, user_message, **options):
        calls.append(user_message)
        return "User built a todo app and asked for dark mode."

    memory = MemoryStore(InMemoryStorage())
    compressor = ContextCompressor(memory, llm=llm or fake_llm, timeout=0, **kwargs)
    return compressor, memory, calls


def test_summarizes_on_every_twentieth_turn():
    compressor, memory, calls = _make_compressor()
    triggered = [compressor.add_turn("user" if i % 2 == 0 else "assistant", f"turn {i}")
                 for i in range(1, 21)]
    assert triggered[:19] == [False] * 19
    assert triggered[19] is True
    assert len(calls) == 1
    assert len(compressor.turns) == 5
    assert compressor.turns[-1].content == "turn 20"

    summaries = memory.load_conversation_summaries()
    assert len(summaries) == 1
    assert (summaries[0].start_turn, summaries[0].end_turn) == (1, 20)


def test_second_window_covers_following_turns():
    compressor, _, _ = _make_compressor(turn_threshold=4, retained_turns=2)
    for i in range(8):
        compressor.add_turn("user", f"t{i}")
    second = compressor.summaries[1]
    assert (second.start_turn, second.end_turn) == (3, 8)
    assert len(compressor.turns) == 2


def test_model_failure_uses_fallback_summary():
    def broken_llm(system_prompt, user_message, **options):
        raise RuntimeError("model unavailable")

    compressor, memory, _ = _make_compressor(llm=broken_llm, turn_threshold=2)
    compressor.add_turn("user", "build a weather app")
    assert compressor.add_turn("assistant", "done") is True
    summary = compressor.summaries[0]
    assert summary.fallback is True
    assert "build a weather app" in summary.text
    assert memory.load_conversation_summaries()[0].fallback is True


def test_non_text_model_reply_uses_fallback():
    compressor, _, _ = _make_compressor(llm=lambda *a, **k: {"summary": "x"}, turn_threshold=1)
    compressor.add_turn("user", "hello")
    assert compressor.summaries[0].fallback is True


def test_summary_is_truncated():
    compressor, _, _ = _make_compressor(llm=lambda *a, **k: "x" * 500, turn_threshold=1,
                                        max_summary_length=50)
    compressor.add_turn("user", "hello")
    assert len(compressor.summaries[0].text) == 50


def test_compressed_context_sections():
    compressor, _, _ = _make_compressor(turn_threshold=2)
    assert compressor.get_compressed_context() == ""
    compressor.add_turn("user", "make a todo app")
    assert compressor.get_compressed_context() == "RECENT CONVERSATION:\n\nUser: make a todo app"

    compressor.add_turn("assistant", "done")
    compressor.add_turn("user", "add dark mode")
    context = compressor.get_compressed_context()
    assert context.startswith("CONVERSATION HISTORY:")
    assert "[Summary 1 (turns 1-2)]:" in context
    assert "RECENT CONVERSATION:" in context
    assert "User: add dark mode" in context
    assert context.index("CONVERSATION HISTORY") < context.index("RECENT CONVERSATION")


def test_save_session_and_reset():
    compressor, memory, _ = _make_compressor()
    compressor.add_turn("user", "hello")
    compressor.save_session()
    assert memory.load_session_context()["metadata"]["turn_count"] == 1
    compressor.reset()
    assert compressor.turn_count == 0
    assert compressor.get_compressed_context() == ""


def test_load_previous_summaries():
    compressor, memory, _ = _make_compressor(turn_threshold=1)
    compressor.add_turn("user", "first session")
    fresh = ContextCompressor(memory, llm=lambda *a, **k: "s", timeout=0)
    assert len(fresh.load_previous_summaries()) == 1


def test_concurrent_turns_are_counted_once():
    compressor, memory, calls = _make_compressor()
    triggered = []
    start = threading.Barrier(4)

    def worker(n):
        start.wait()
        for i in range(10):
            triggered.append(compressor.add_turn("user", f"client {n} turn {i}"))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert compressor.turn_count == 40
    assert triggered.count(True) == 2
    assert len(calls) == 2
    assert len(compressor.turns) == 5
    assert [(s.start_turn, s.end_turn) for s in memory.load_conversation_summaries()] == [(1, 20), (16, 40)]
