"""Claude API client used by every agent."""

import json
import logging
import os
import re
import time

import anthropic

from config.defaults import DEFAULTS

LOGGER = logging.getLogger(__name__)

MODEL = DEFAULTS["model"]
MAX_TOKENS = DEFAULTS["max_tokens"]
TEMPERATURE = DEFAULTS["temperature"]

JSON_INSTRUCTION = "\n\nIMPORTANT: Respond ONLY with valid JSON. No markdown fences, no commentary."
TRUNCATION_MARKER = "\n\n// TRUNCATED: Response hit token limit"


def get_client():
    """Return an Anthropic client. Raises if no API key is set."""
    api_key = os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        raise RuntimeError(
            "ANTHROPIC_API_KEY environment variable is not set. "
            "Get a key at https://console.anthropic.com/ and run:\n"
            "  export ANTHROPIC_API_KEY='your-key-here'"
        )
    return anthropic.Anthropic(api_key=api_key)


def strip_fences(text):
    """Remove a surrounding markdown code fence, if any."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```\w*\n?", "", cleaned)
        cleaned = re.sub(r"\n?```$", "", cleaned)
    return cleaned


def parse_json_response(text):
    """Parse a model reply as JSON, tolerating fences and surrounding prose.

    Raises json.JSONDecodeError if no JSON object or array can be found.
    """
    cleaned = strip_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        # Fall back to the outermost {...} block when the model added commentary
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise
        return json.loads(cleaned[start:end + 1])


def call_llm(system_prompt, user_message, response_format=None, model=None,
             max_tokens=None, temperature=None):
    """Call Claude with optional structured JSON output.

    Args:
        system_prompt: System prompt string.
        user_message: User message string.
        response_format: If "json", appends instruction to return valid JSON
                         and attempts to parse the response.
        model, max_tokens, temperature: Per-call overrides of the defaults.

    Returns:
        Raw text string, or parsed dict/list if response_format="json".
        If JSON parsing fails the raw text is returned and the caller
        decides whether the shape is acceptable.
    """
    client = get_client()

    if response_format == "json":
        system_prompt = system_prompt + JSON_INSTRUCTION

    model = model or MODEL
    LOGGER.debug("LLM call model=%s system=%d chars user=%d chars",
                 model, len(system_prompt), len(user_message))

    last_error = None
    for attempt in range(2):
        try:
            # Streaming avoids the SDK timeout for large max_tokens
            text = ""
            with client.messages.stream(
                model=model,
                max_tokens=max_tokens or MAX_TOKENS,
                temperature=TEMPERATURE if temperature is None else temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}],
            ) as stream:
                for chunk in stream.text_stream:
                    text += chunk
                stop_reason = stream.get_final_message().stop_reason

            if stop_reason == "max_tokens":
                LOGGER.warning("LLM response truncated at max_tokens (model=%s)", model)
                text += TRUNCATION_MARKER

            if response_format == "json":
                return parse_json_response(text)

            return text

        except anthropic.APIError as e:
            last_error = e
            if attempt == 0:
                LOGGER.warning("LLM call failed (%s), retrying once", e)
                time.sleep(2)
                continue
            raise
        except json.JSONDecodeError:
            return text

    raise last_error
