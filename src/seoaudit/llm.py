"""LLM client and defensive parsing of model output."""

import json
import logging
import math
import os
import re
from dataclasses import dataclass
from typing import Any, Optional

from seoaudit.constants import PARSE_SNIPPET_CHARS
from seoaudit.errors import ConfigError, LLMCallFailure

logger = logging.getLogger(__name__)

_OPEN_FENCE_RE = re.compile(r"^```(?:json|JSON)?[ \t]*\n?")
_CLOSE_FENCE_RE = re.compile(r"\n?```\s*$")
_DECODER = json.JSONDecoder()


class LLMClient:
    """Async client for the hosted LLM.

    One attempt per call: there is no retry policy, a failure is terminal
    for the item being audited.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        provider: str = "openai",
        max_tokens: int = 3000,
        temperature: float = 0.2,
        timeout: float = 90.0,
    ):
        """Initialize the LLM client.

        Args:
            api_key: API key for the LLM provider
            model: Model name to use
            provider: LLM provider (openai or anthropic)
            max_tokens: Default maximum tokens for a response
            temperature: Sampling temperature
            timeout: Request timeout passed to the provider SDK, in seconds

        Raises:
            ConfigError: If no API key is provided or set in LLM_API_KEY
        """
        self.api_key = api_key or os.getenv("LLM_API_KEY")
        self.model = model
        self.provider = provider
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self._client = None

        if not self.api_key:
            raise ConfigError(
                "API key must be provided or set in LLM_API_KEY environment variable"
            )
        if provider not in ("openai", "anthropic"):
            raise ConfigError(f"Unsupported provider: {provider}")

    async def complete(
        self, system_prompt: str, user_prompt: str, max_tokens: Optional[int] = None
    ) -> str:
        """Send one prompt pair and return the raw response text.

        Raises:
            LLMCallFailure: If the provider call fails
        """
        tokens = max_tokens or self.max_tokens
        try:
            if self.provider == "anthropic":
                return await self._call_anthropic(system_prompt, user_prompt, tokens)
            return await self._call_openai(system_prompt, user_prompt, tokens)
        except LLMCallFailure:
            raise
        except Exception as e:
            raise LLMCallFailure(f"{self.provider} call failed: {e}") from e

    async def _call_openai(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        import openai

        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.temperature,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content or ""

    async def _call_anthropic(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        import anthropic

        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=self.temperature,
        )
        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing LLM text: a value on success, a diagnostic otherwise."""

    ok: bool
    value: Optional[dict] = None
    error: str = ""
    snippet: str = ""


def strip_code_fence(text: str) -> str:
    """Remove a leading and a trailing fence marker. Fences inside the body are kept."""
    stripped = text.strip()
    stripped = _OPEN_FENCE_RE.sub("", stripped, count=1)
    stripped = _CLOSE_FENCE_RE.sub("", stripped, count=1)
    return stripped.strip()


def balance_brackets(text: str) -> str:
    """Best-effort repair of truncated JSON.

    Tracks open objects and arrays outside string literals, closes an
    unterminated string, drops a dangling comma and appends the missing
    closers in reverse order.
    """
    stack: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            stack.append("}")
        elif ch == "[":
            stack.append("]")
        elif ch in "}]" and stack and stack[-1] == ch:
            stack.pop()

    repaired = text
    if in_string:
        if escaped:
            repaired = repaired[:-1]
        repaired += '"'
    repaired = repaired.rstrip()
    if repaired.endswith(","):
        repaired = repaired[:-1]
    elif repaired.endswith(":"):
        repaired += "null"
    return repaired + "".join(reversed(stack))


def _loads_object(text: str) -> Optional[dict]:
    value = json.loads(text)
    return value if isinstance(value, dict) else None


def _decode_leading_object(text: str) -> Optional[dict]:
    # the first complete value wins; trailing fences or prose are ignored
    value, _ = _DECODER.raw_decode(text)
    return value if isinstance(value, dict) else None


def parse_llm_json(text: Optional[str]) -> ParseResult:
    """Parse model output as a JSON object. Never raises.

    Stage one is a direct parse. Stage two strips leading and trailing fence
    markers, skips any prose before the first brace, decodes the first
    complete object and, failing that, balances brackets and parses again.
    """
    raw = text or ""
    snippet = raw.strip()[:PARSE_SNIPPET_CHARS]
    if not raw.strip():
        return ParseResult(ok=False, error="Empty LLM response", snippet=snippet)

    try:
        value = _loads_object(raw)
        if value is not None:
            return ParseResult(ok=True, value=value)
    except (json.JSONDecodeError, ValueError):
        pass

    candidate = strip_code_fence(raw)
    start = candidate.find("{")
    if start == -1:
        return ParseResult(ok=False, error="No JSON object found in LLM response", snippet=snippet)
    candidate = candidate[start:]

    for attempt in (candidate, balance_brackets(candidate)):
        try:
            value = _decode_leading_object(attempt)
        except (json.JSONDecodeError, ValueError) as e:
            error = f"Invalid JSON after repair: {e}"
            continue
        if value is not None:
            return ParseResult(ok=True, value=value)
        error = "LLM response is not a JSON object"
    return ParseResult(ok=False, error=error, snippet=snippet)


def _as_list(value: Any) -> list:
    if isinstance(value, list):
        return value
    if value in (None, ""):
        return []
    return [value]


def normalize_audit_payload(payload: dict) -> dict:
    """Coerce a parsed model response into the shared audit envelope."""
    score = payload.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
        score = 0
    score = int(round(min(100, max(0, score))))

    recommendations = []
    for item in _as_list(payload.get("recommendations")):
        if isinstance(item, dict):
            item = dict(item)
            item["howToFix"] = item.get("howToFix") or item.get("how_to_fix") or ""
            item.pop("how_to_fix", None)
        recommendations.append(item)

    summary = payload.get("summary")
    return {
        "score": score,
        "summary": summary if isinstance(summary, str) else "",
        "strengths": _as_list(payload.get("strengths")),
        "recommendations": recommendations,
        "standards": _as_list(payload.get("standards")),
    }
