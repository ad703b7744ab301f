"""Context compressor: bounds conversation size by summarizing older turns."""

from __future__ import annotations

import logging
import threading

from config.defaults import DEFAULTS
from config.models import get_model_config
from core.state import ConversationSummary, Turn
from utils.concurrency import call_with_timeout
from utils.llm import call_llm
from utils.template_engine import load_prompt

LOGGER = logging.getLogger(__name__)


class ContextCompressor:
    """Accumulates turns and every N turns folds them into a stored summary.

    After a summarization only the last few raw turns are kept. Summaries
    are appended to the memory store so later sessions can reuse them.
    """

    def __init__(self, memory, llm=None, turn_threshold=None, max_summary_length=None,
                 retained_turns=None, timeout=None):
        self.memory = memory
        self.timeout = DEFAULTS["agent_timeout"] if timeout is None else timeout
        self.llm = llm or call_llm
        self.turn_threshold = turn_threshold or DEFAULTS["turn_threshold"]
        self.max_summary_length = max_summary_length or DEFAULTS["max_summary_length"]
        self.retained_turns = retained_turns or DEFAULTS["retained_turns"]
        self.turns: list[Turn] = []
        self.summaries: list[ConversationSummary] = []
        self.turn_count = 0
        # Reentrant: add_turn summarizes while holding it
        self._lock = threading.RLock()

    def add_turn(self, role, content, timestamp=None) -> bool:
        """Record a turn. Returns True when this turn triggered summarization."""
        turn = Turn(role=role, content=content)
        if timestamp is not None:
            turn.timestamp = timestamp
        with self._lock:
            self.turns.append(turn)
            self.turn_count += 1
            if self.turn_count % self.turn_threshold == 0:
                self.summarize_and_compress()
                return True
        return False

    def summarize_and_compress(self):
        with self._lock:
            return self._compress()

    def _compress(self):
        if not self.turns:
            return None
        start = self.turn_count - len(self.turns) + 1
        summary = ConversationSummary(
            text="", start_turn=start, end_turn=self.turn_count,
        )
        try:
            summary.text = self._summarize_with_model(self.turns)
        except Exception as e:  # noqa: BLE001 - summarization must never block the session
            LOGGER.warning("Summarization failed, using fallback summary: %s", e)
            summary.text = self._fallback_summary(self.turns)
            summary.fallback = True

        if not summary.text.strip():
            summary.text = self._fallback_summary(self.turns)
            summary.fallback = True
        summary.text = summary.text[:self.max_summary_length]

        self.summaries.append(summary)
        self.memory.append_conversation_summary(summary)
        self.turns = self.turns[-self.retained_turns:]
        LOGGER.info("Compressed turns %d-%d, kept %d raw turns",
                    summary.start_turn, summary.end_turn, len(self.turns))
        return summary

    def _summarize_with_model(self, turns):
        config = get_model_config("summarizer")
        conversation = "\n\n".join(f"{t.role.upper()}: {t.content}" for t in turns)
        result = call_with_timeout(
            "summarizer", self.timeout, self.llm,
            load_prompt("summarizer"),
            f"Summarize this conversation in at most {self.max_summary_length} characters:\n\n{conversation}",
            model=config["model"],
            max_tokens=config["max_tokens"],
            temperature=config["temperature"],
        )
        if not isinstance(result, str):
            raise ValueError(f"summarizer returned {type(result).__name__}, expected text")
        return result.strip()

    @staticmethod
    def _fallback_summary(turns):
        requests = [t.content[:100] for t in turns if t.role == "user"]
        return f"Session summary ({len(turns)} turns): " + "; ".join(requests)

    def get_compressed_context(self):
        """Summaries first, then the recent raw turns, each under its own heading."""
        with self._lock:
            summaries, turns = list(self.summaries), list(self.turns)
        parts = []
        if summaries:
            blocks = [
                f"[Summary {i} (turns {s.start_turn}-{s.end_turn})]:\n{s.text}"
                for i, s in enumerate(summaries, 1)
            ]
            parts.append("CONVERSATION HISTORY:\n\n" + "\n\n".join(blocks))
        if turns:
            recent = [
                f"{'User' if t.role == 'user' else 'Assistant'}: {t.content}"
                for t in turns
            ]
            parts.append("RECENT CONVERSATION:\n\n" + "\n\n".join(recent))
        return "\n\n---\n\n".join(parts)

    def load_previous_summaries(self, limit=5):
        """Seed this session with summaries persisted by earlier sessions."""
        previous = self.memory.load_conversation_summaries(limit)
        with self._lock:
            self.summaries = previous + self.summaries
            return list(self.summaries)

    def save_session(self):
        """Persist a final summary of the session into the memory store."""
        text = self.get_compressed_context()
        self.memory.save_session_summary(text[:self.max_summary_length], self.metadata())
        return text

    def metadata(self):
        with self._lock:
            return {
                "turn_count": self.turn_count,
                "retained_turns": len(self.turns),
                "summaries": len(self.summaries),
            }

    def reset(self):
        with self._lock:
            self.turns = []
            self.summaries = []
            self.turn_count = 0
