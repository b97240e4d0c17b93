from __future__ import annotations

import logging

from groq import APIError, Groq

from ..recommendations.errors import UpstreamUnavailable
from .config import DEFAULT_LLM_CONFIG, LLMConfig

logger = logging.getLogger(__name__)


def is_enabled(config: LLMConfig = DEFAULT_LLM_CONFIG) -> bool:
    return config.enabled and bool(config.api_key)


def generate(
    prompt: str,
    system_prompt: str,
    config: LLMConfig = DEFAULT_LLM_CONFIG,
    max_tokens: int | None = None,
    temperature: float | None = None,
) -> str:
    """
    Send one prompt to Groq and return the raw response text.

    The client timeout (``config.timeout``) bounds the round trip.
    Raises ``UpstreamUnavailable`` on transport/API errors or an empty reply.
    """
    try:
        client = Groq(api_key=config.api_key, timeout=config.timeout)
        response = client.chat.completions.create(
            model=config.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens or config.max_tokens,
            temperature=config.temperature if temperature is None else temperature,
            response_format={"type": "json_object"},
        )
    except APIError as exc:
        raise UpstreamUnavailable("groq", "Model call failed") from exc

    content = response.choices[0].message.content or ""
    if not content.strip():
        raise UpstreamUnavailable("groq", "Empty response from model")
    return content


class GroqModel:
    """Text-in / text-out model callable bound to one system prompt."""

    def __init__(
        self,
        system_prompt: str,
        config: LLMConfig = DEFAULT_LLM_CONFIG,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> None:
        self.system_prompt = system_prompt
        self.config = config
        self.max_tokens = max_tokens
        self.temperature = temperature

    def __call__(self, prompt: str) -> str:
        return generate(
            prompt,
            self.system_prompt,
            config=self.config,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )


def build_model(
    system_prompt: str,
    config: LLMConfig = DEFAULT_LLM_CONFIG,
    max_tokens: int | None = None,
    temperature: float | None = None,
) -> GroqModel | None:
    """Return a model callable, or ``None`` when the LLM is disabled or unconfigured."""
    if not is_enabled(config):
        logger.info("Groq LLM disabled, deterministic fallbacks will be used")
        return None
    return GroqModel(system_prompt, config, max_tokens=max_tokens, temperature=temperature)
