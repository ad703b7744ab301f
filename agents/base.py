"""Base class for the model-backed specialist agents."""

import json
import logging

from config.defaults import DEFAULTS
from config.models import get_model_config
from core.errors import AgentError
from core.memory import MemoryStore
from utils.concurrency import call_with_timeout
from utils.llm import call_llm, parse_json_response
from utils.template_engine import render_prompt

LOGGER = logging.getLogger(__name__)


class BaseAgent:
    """Wraps one model call with a role prompt and an output contract.

    Agents hold no per-request state. The memory store supplies the
    persistent rules that are appended to every system prompt.
    """

    name = "base"
    description = "Base agent"
    role = "planner"            # key into config.models
    prompt_name = None          # agents/prompts/<prompt_name>.txt

    def __init__(self, memory=None, llm=None, timeout=None):
        self.memory = memory if memory is not None else MemoryStore()
        self.llm = llm or call_llm
        self.timeout = DEFAULTS["agent_timeout"] if timeout is None else timeout

    def system_prompt(self, prompt_name=None, **variables):
        """Render the role prompt and append the user's persistent rules."""
        prompt = render_prompt(prompt_name or self.prompt_name, variables)
        rules = self.memory.load_rules()
        if rules:
            prompt += "\n\nPROJECT RULES (always follow):\n" + rules
        return prompt

    def call(self, system_prompt, user_message, response_format=None):
        """One model call under the agent timeout. Failures become AgentError."""
        config = get_model_config(self.role)
        LOGGER.debug("%s calling %s (%d chars)", self.name, config["model"], len(user_message))
        try:
            return call_with_timeout(
                self.name, self.timeout, self.llm,
                system_prompt, user_message,
                response_format=response_format,
                model=config["model"],
                max_tokens=config["max_tokens"],
                temperature=config["temperature"],
            )
        except AgentError:
            raise
        except Exception as e:
            raise AgentError(self.name, f"model call failed: {e}") from e

    def call_json(self, system_prompt, user_message):
        """Model call that must yield a JSON object."""
        result = self.call(system_prompt, user_message, response_format="json")
        if isinstance(result, str):
            try:
                result = parse_json_response(result)
            except json.JSONDecodeError as e:
                raise AgentError(self.name, "response was not valid JSON") from e
        if not isinstance(result, dict):
            raise AgentError(self.name, f"expected a JSON object, got {type(result).__name__}")
        return result

    def call_text(self, system_prompt, user_message):
        result = self.call(system_prompt, user_message)
        if not isinstance(result, str):
            raise AgentError(self.name, f"expected text, got {type(result).__name__}")
        return result


def describe_files(files, limit=None):
    """Render a file map as fenced blocks for a prompt."""
    parts = []
    for filename in sorted(files or {}):
        content = files[filename]
        if limit and len(content) > limit:
            content = content[:limit] + "\n// ... (truncated)"
        parts.append(f"```{filename}\n{content}\n```")
    return "\n\n".join(parts)
