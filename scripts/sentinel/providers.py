"""Model providers for the review call.

One capability (`analyze`) behind a closed set of variants; `create_provider`
maps the configured name to a variant and fails fast on anything else.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Any, Mapping, Protocol

from . import log
from .config import SentinelConfig
from .findings import ResponseShapeError, ReviewResponse, coerce_review_response
from .review_prompt import SYSTEM_PROMPT, ReviewRequest, render_review_prompt

OPENAI_API_BASE = "https://api.openai.com/v1"
OPENAI_DEFAULT_MODEL = "gpt-4o"
OLLAMA_DEFAULT_BASE_URL = "http://localhost:11434"
OLLAMA_DEFAULT_MODEL = "codellama:13b"
REQUEST_TIMEOUT = 300
TEMPERATURE = 0.1
MAX_OUTPUT_TOKENS = 4096


class ProviderError(RuntimeError):
    """Model call failed or returned something that is not a review."""


class UnknownProviderError(ProviderError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"Unknown LLM provider: {provider}")
        self.provider = provider


class ProviderNotImplementedError(ProviderError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"{provider} provider is not implemented yet")
        self.provider = provider


class LLMProvider(Protocol):
    name: str

    def analyze(self, request: ReviewRequest) -> ReviewResponse:
        ...


def _post_json(url: str, payload: dict[str, Any], headers: Mapping[str, str] | None = None) -> Any:
    """POST JSON and return the parsed JSON body."""
    req = urllib.request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        method="POST",
        headers={"Content-Type": "application/json", **(headers or {})},
    )
    with urllib.request.urlopen(req, timeout=REQUEST_TIMEOUT) as resp:
        return json.loads(resp.read())


def parse_review_content(content: str | None, provider: str) -> ReviewResponse:
    """Turn the model's message text into a coerced ReviewResponse."""
    if not content or not content.strip():
        raise ProviderError(f"Empty response from {provider}")
    log.debug(f"{provider} response: {content[:500]}...")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ProviderError(f"{provider} returned invalid JSON: {exc}") from exc
    try:
        return coerce_review_response(data)
    except ResponseShapeError as exc:
        raise ProviderError(f"{provider} returned an unexpected review shape: {exc}") from exc


def _messages(request: ReviewRequest) -> list[dict[str, str]]:
    prompt = render_review_prompt(request)
    log.debug(f"Prompt length: {len(prompt)} characters")
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


class OpenAIProvider:
    name = "openai"

    def __init__(self, api_key: str, model: str = OPENAI_DEFAULT_MODEL, base_url: str = OPENAI_API_BASE) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")

    def analyze(self, request: ReviewRequest) -> ReviewResponse:
        log.info(f"Sending review request to OpenAI ({self.model})...")
        url = f"{self.base_url}/chat/completions"
        payload = {
            "model": self.model,
            "messages": _messages(request),
            "response_format": {"type": "json_object"},
            "temperature": TEMPERATURE,
            "max_tokens": MAX_OUTPUT_TOKENS,
        }
        try:
            data = _post_json(url, payload, {"Authorization": f"Bearer {self.api_key}"})
        except urllib.error.HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")
            raise ProviderError(f"HTTP {exc.code} from {url}: {body}") from exc
        except urllib.error.URLError as exc:
            raise ProviderError(f"Request failed for {url}: {exc.reason}") from exc
        except json.JSONDecodeError as exc:
            raise ProviderError(f"OpenAI returned a non-JSON body: {exc}") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        return parse_review_content(content, "OpenAI")


class OllamaProvider:
    name = "ollama"

    def __init__(self, base_url: str = OLLAMA_DEFAULT_BASE_URL, model: str = OLLAMA_DEFAULT_MODEL) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model

    def analyze(self, request: ReviewRequest) -> ReviewResponse:
        log.info(f"Sending review request to Ollama ({self.model})...")
        url = f"{self.base_url}/api/chat"
        payload = {
            "model": self.model,
            "messages": _messages(request),
            "format": "json",
            "stream": False,
            "options": {"temperature": TEMPERATURE, "num_predict": MAX_OUTPUT_TOKENS},
        }
        try:
            data = _post_json(url, payload)
        except urllib.error.HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")
            raise ProviderError(f"HTTP {exc.code} from {url}: {body}") from exc
        except urllib.error.URLError as exc:
            if isinstance(exc.reason, ConnectionRefusedError):
                raise ProviderError(
                    f"Cannot connect to Ollama at {self.base_url}. "
                    "Make sure Ollama is running at the configured URL."
                ) from exc
            raise ProviderError(f"Request failed for {url}: {exc.reason}") from exc
        except json.JSONDecodeError as exc:
            raise ProviderError(f"Ollama returned a non-JSON body: {exc}") from exc

        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        return parse_review_content(content, "Ollama")


def create_provider(config: SentinelConfig, env: Mapping[str, str]) -> LLMProvider:
    llm = config.llm

    if llm.provider == "openai":
        api_key = (env.get("INPUT_OPENAI_API_KEY") or env.get("OPENAI_API_KEY") or "").strip()
        if not api_key:
            raise ProviderError(
                "OpenAI API key is required. Set the openai_api_key input in your workflow."
            )
        return OpenAIProvider(api_key, llm.model or OPENAI_DEFAULT_MODEL, llm.base_url or OPENAI_API_BASE)

    if llm.provider == "ollama":
        base_url = llm.base_url or (env.get("INPUT_OLLAMA_BASE_URL") or "").strip() or OLLAMA_DEFAULT_BASE_URL
        model = llm.model or (env.get("INPUT_OLLAMA_MODEL") or "").strip() or OLLAMA_DEFAULT_MODEL
        return OllamaProvider(base_url, model)

    if llm.provider == "anthropic":
        raise ProviderNotImplementedError("anthropic")

    raise UnknownProviderError(llm.provider)
