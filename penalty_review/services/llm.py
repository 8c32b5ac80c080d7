import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from openai import OpenAI, OpenAIError

from penalty_review.core import config

log = logging.getLogger("llm")


class LLMUnavailable(RuntimeError):
    """No credentials configured, or AI review switched off."""


class LLMError(RuntimeError):
    """Transport failure, non-2xx response or empty reply."""


class ChatClient:
    """Thin wrapper over an OpenAI-compatible chat completions endpoint."""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 model: Optional[str] = None, timeout: Optional[float] = None,
                 max_retries: Optional[int] = None):
        api_key = api_key or os.getenv(config.LLM_API_KEY_ENV)
        if not api_key:
            raise LLMUnavailable(f"{config.LLM_API_KEY_ENV} is not set")
        self.model = model or config.LLM_MODEL
        # the SDK retries transient failures itself, with jittered backoff
        self._client = OpenAI(
            api_key=api_key,
            base_url=base_url or config.LLM_BASE_URL,
            timeout=timeout if timeout is not None else config.LLM_TIMEOUT_SECONDS,
            max_retries=max_retries if max_retries is not None else config.LLM_MAX_RETRIES,
        )

    def chat(self, messages: List[Dict[str, str]], temperature: float = 0.3,
             max_tokens: int = 2048) -> str:
        log.info("LLM chat call model=%s, messages=%d", self.model, len(messages))
        try:
            resp = self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            raise LLMError(f"chat completion failed: {e}") from e

        if not resp.choices:
            raise LLMError("chat completion returned no choices")
        message = resp.choices[0].message
        # reasoning models may leave `content` empty
        text = message.content or getattr(message, "reasoning_content", None) or ""
        if not text.strip():
            raise LLMError("chat completion returned an empty reply")
        return text


@dataclass(frozen=True)
class Parsed:
    payload: Dict[str, Any]


@dataclass(frozen=True)
class Unparseable:
    raw: str
    reason: str


ParseResult = Union[Parsed, Unparseable]


def _brace_spans(text: str) -> List[tuple]:
    """(start, end) of every balanced {...} span, ignoring braces inside JSON strings."""
    spans = []
    stack: List[int] = []
    in_string = escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"' and stack:
            in_string = True
        elif ch == "{":
            stack.append(i)
        elif ch == "}" and stack:
            start = stack.pop()
            spans.append((start, i + 1))
    return spans


def extract_json(text: str) -> ParseResult:
    """
    Pull a JSON object out of a free-text model reply.
    Tries the whole reply, then balanced spans from the outermost/largest down.
    """
    if not text or not text.strip():
        return Unparseable(text or "", "empty reply")
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return Parsed(data)
    except ValueError:
        pass

    spans = sorted(_brace_spans(text), key=lambda s: (-(s[1] - s[0]), s[0]))
    for start, end in spans:
        try:
            data = json.loads(text[start:end])
        except ValueError:
            continue
        if isinstance(data, dict):
            return Parsed(data)
    return Unparseable(text, "no parseable JSON object")
