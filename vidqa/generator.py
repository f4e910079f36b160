"""Text generation — any OpenAI-compatible chat completion API, plus fallback text.

Config is read from a .env file (drop it in your project root) or env vars.

Setup (pick ONE provider):

  # OpenRouter (one key, every model)
  VIDQA_LLM_API_KEY=sk-or-v1-your-key-here
  VIDQA_LLM_BASE_URL=https://openrouter.ai/api/v1
  VIDQA_LLM_MODEL=google/gemma-3-12b-it:free

  # OpenAI (direct)
  OPENAI_API_KEY=sk-...

  # Ollama (local, free)
  VIDQA_LLM_BASE_URL=http://localhost:11434/v1
  VIDQA_LLM_MODEL=llama3
  VIDQA_LLM_API_KEY=ollama

The generator never retries a request. A retryable status (404, 429, 5xx,
connection error, empty completion) moves on to the next model candidate;
anything else stops. The one exception is a 400 Bad Request that names the
system role: the same model gets the prompt once more as a single user
message. Callers that need an answer regardless use generate_or_fallback().
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from . import config
from .context import tokenize, trim_to
from .errors import UpstreamGenerationError, ValidationError
from .schemas import GenerationRequest, GenerationResult

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_PROVIDER = "openai"
MAX_INPUT_CHARS = 8000
DEFAULT_MAX_OUTPUT_CHARS = 2000
HARD_MAX_OUTPUT_CHARS = 8000
FALLBACK_PROVIDER = "fallback"


def max_output_chars() -> int:
    configured = config.get("VIDQA_MAX_OUTPUT_CHARS", DEFAULT_MAX_OUTPUT_CHARS, cast=int)
    return min(configured, HARD_MAX_OUTPUT_CHARS)


def _model_candidates() -> list[str]:
    """Configured models first, then the primary model, without duplicates."""
    extra = [part.strip() for part in config.get("VIDQA_LLM_MODELS").split(",")]
    primary = config.get("VIDQA_LLM_MODEL") or DEFAULT_MODEL
    seen: set[str] = set()
    candidates: list[str] = []
    for model in [*extra, primary]:
        if model and model not in seen:
            seen.add(model)
            candidates.append(model)
    return candidates


def _is_retryable(exc: Exception) -> bool:
    from openai import APIConnectionError, APIStatusError

    if isinstance(exc, APIStatusError):
        return exc.status_code in (404, 429) or exc.status_code >= 500
    return isinstance(exc, APIConnectionError)


def _rejects_system_role(exc: Exception) -> bool:
    from openai import BadRequestError

    return isinstance(exc, BadRequestError) and "system" in str(exc).lower()


class OpenAICompatibleGenerator:
    """Generation collaborator backed by the openai SDK."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        models: list[str] | None = None,
        provider: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else (
            config.get("VIDQA_LLM_API_KEY") or config.get("OPENAI_API_KEY")
        )
        self.base_url = base_url if base_url is not None else (config.get("VIDQA_LLM_BASE_URL") or None)
        self.models = models or _model_candidates()
        self.provider = provider or config.get("VIDQA_LLM_PROVIDER") or DEFAULT_PROVIDER
        self.timeout = timeout or config.get("VIDQA_LLM_TIMEOUT", 60.0, cast=float)
        self._client: Any = None

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import OpenAI

            client_kwargs: dict[str, Any] = {
                "api_key": self.api_key,
                "max_retries": 0,
                "http_client": httpx.Client(timeout=self.timeout),
            }
            if self.base_url:
                client_kwargs["base_url"] = self.base_url
            self._client = OpenAI(**client_kwargs)
        return self._client

    def _complete(self, model: str, request: GenerationRequest) -> str:
        client = self._get_client()
        user_content = trim_to(request.user_prompt, MAX_INPUT_CHARS)
        system_content = trim_to(request.system_instruction, MAX_INPUT_CHARS)
        messages = [{"role": "user", "content": user_content}]
        if system_content:
            messages.insert(0, {"role": "system", "content": system_content})

        try:
            response = client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_output_tokens,
            )
        except Exception as sys_err:
            # some free models answer 400 to a system role; resend once as a user message
            if system_content and _rejects_system_role(sys_err):
                logger.info("System prompt not supported by %s, retrying as user message", model)
                response = client.chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": f"{system_content}\n\n{user_content}"}],
                    temperature=request.temperature,
                    max_tokens=request.max_output_tokens,
                )
            else:
                raise

        raw = response.choices[0].message.content or ""
        return trim_to(raw, max_output_chars())

    def generate(self, request: GenerationRequest) -> GenerationResult:
        if not self.is_configured():
            raise UpstreamGenerationError("VIDQA_LLM_API_KEY is missing or empty at runtime")

        last_error = "AI provider unavailable"
        for model in self.models:
            logger.info("Calling LLM: model=%s temperature=%.2f", model, request.temperature)
            try:
                text = self._complete(model, request)
            except Exception as exc:
                last_error = str(exc) or exc.__class__.__name__
                logger.warning("LLM request failed (%s): %s", model, last_error)
                if _is_retryable(exc):
                    continue
                break

            if text:
                logger.info("LLM reply generated (%d chars, model=%s)", len(text), model)
                return GenerationResult(text=text, provider=self.provider, model=model)

            last_error = f"{model} returned an empty response"
            logger.warning(last_error)

        raise UpstreamGenerationError(last_error)


def generate_or_fallback(
    generator: Any,
    request: GenerationRequest,
    fallback_text: str,
) -> GenerationResult:
    """Generate with the collaborator; any failure yields the fallback text."""
    if not request.user_prompt.strip():
        raise ValidationError("AI prompt is required")

    warning: str | None = None
    if generator is None or not generator.is_configured():
        warning = "VIDQA_LLM_API_KEY is missing or empty at runtime"
    else:
        try:
            return generator.generate(request)
        except Exception as exc:
            warning = getattr(exc, "message", None) or str(exc)
            logger.warning("Generation failed, using fallback text: %s", warning)

    logger.debug("Using deterministic fallback text.")
    return GenerationResult(
        text=trim_to(fallback_text, max_output_chars()),
        provider=FALLBACK_PROVIDER,
        model="none",
        warning=warning,
    )


# ── Fallback text ────────────────────────────────────────────────


def _reduce_repetitive_text(value: object) -> str:
    """Drop text that is mostly the same few words; short text passes."""
    text = trim_to(value, 1200)
    if not text:
        return ""
    words = tokenize(text)
    if len(words) < 8:
        return text
    if len(set(words)) / len(words) >= 0.4:
        return text
    return ""


def build_answer_fallback(question: str, title: str, summary: str | None = None) -> str:
    safe_question = trim_to(question, 240)
    safe_title = trim_to(title, 120)
    safe_summary = _reduce_repetitive_text(summary)

    if safe_summary:
        text = (
            f'Based on available metadata for "{safe_title}": {safe_summary}. '
            f'Question asked: "{safe_question}".'
        )
    else:
        text = (
            f'I can only see limited metadata for "{safe_title}" right now '
            "(no useful transcript context). Your question was: "
            f'"{safe_question}". Please ask again once a transcript or description is available.'
        )
    return trim_to(text, max_output_chars())


def build_summary_fallback(title: str, description: str | None = None) -> str:
    safe_title = trim_to(title, 120)
    safe_description = _reduce_repetitive_text(description)

    if not safe_description:
        return (
            f'Summary for "{safe_title}": Limited context is available '
            "(no strong transcript/description). Add a detailed description "
            "or transcript for a better summary."
        )
    return f'Summary for "{safe_title}": {safe_description}'
