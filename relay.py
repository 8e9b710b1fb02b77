"""
relay.py — Uni-GPT Voice Assistant · Completion Relay
=====================================================
Validates a chat payload, layers the fixed generation parameters on top of
the caller's temperature, and forwards it to Groq.  One attempt per call,
no state between calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from groq import AsyncGroq

from config import RelayConfig
from speech import RelayError

log = logging.getLogger("unigpt.relay")

MESSAGES_REQUIRED = "Messages array is required"
GENERIC_FAILURE   = "Internal server error"


class InvalidInput(RelayError):
    status_code = 400


class ProviderFailure(RelayError):
    status_code = 500


@dataclass
class RelayRequest:
    messages:    list[Any]
    temperature: Any


def parse_request(body: Any, default_temperature: float = 0.7) -> RelayRequest:
    """Check the payload shape.  Individual messages are passed through untouched."""
    if not isinstance(body, dict):
        raise InvalidInput(MESSAGES_REQUIRED)
    messages = body.get("messages")
    if messages is None or not isinstance(messages, list):
        raise InvalidInput(MESSAGES_REQUIRED)
    return RelayRequest(
        messages=messages,
        temperature=body.get("temperature", default_temperature),
    )


class CompletionRelay:
    """Stateless forwarder to the completion provider."""

    def __init__(self, config: RelayConfig, client: Optional[Any] = None):
        self._config = config
        self._client = client

    @property
    def model(self) -> str:
        return self._config.model

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = AsyncGroq(api_key=self._config.api_key)
        return self._client

    async def complete(self, request: RelayRequest) -> str:
        cfg = self._config
        log.info(
            "event=relay_start model=%s messages=%d temperature=%s",
            cfg.model, len(request.messages), request.temperature,
        )
        try:
            response = await self._get_client().chat.completions.create(
                model=cfg.model,
                messages=request.messages,
                temperature=request.temperature,
                max_tokens=cfg.max_tokens,
                presence_penalty=cfg.presence_penalty,
                frequency_penalty=cfg.frequency_penalty,
            )
            content = response.choices[0].message.content if response.choices else None
        except Exception as exc:
            log.error("event=provider_error model=%s error=%s", cfg.model, exc)
            raise ProviderFailure(getattr(exc, "message", None) or str(exc) or GENERIC_FAILURE) from exc

        if not content:
            log.warning("event=provider_empty_reply fallback=%r", cfg.fallback_message)
            return cfg.fallback_message

        log.info("event=relay_done reply_len=%d", len(content))
        return content

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
