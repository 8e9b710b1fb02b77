"""
relay_client.py — Uni-GPT Voice Assistant · Relay HTTP Client
=============================================================
What the controller uses to reach POST /api/chat.  No timeout is applied:
a hung relay keeps the controller in THINKING until it answers.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import httpx

from speech import Message, RelayError

log = logging.getLogger("unigpt.relay_client")

CHAT_PATH = "/api/chat"


class HttpRelayClient:

    def __init__(
        self,
        base_url: str,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    async def complete(self, messages: Sequence[Message], temperature: float) -> str:
        payload = {
            "messages":    [m.to_dict() for m in messages],
            "temperature": temperature,
        }
        try:
            resp = await self._client.post(CHAT_PATH, json=payload)
        except httpx.RequestError as exc:
            log.error("event=relay_unreachable error=%s", exc)
            raise RelayError(str(exc) or exc.__class__.__name__) from exc

        if resp.is_error:
            log.error("event=relay_http_error status=%d body=%.200s", resp.status_code, resp.text)
            raise RelayError("Failed to get response from AI")

        try:
            data = resp.json()
        except ValueError as exc:
            log.error("event=relay_bad_reply status=%d body=%.200s", resp.status_code, resp.text)
            raise RelayError(str(exc) or "Unreadable response from AI") from exc
        if not isinstance(data, dict):
            log.error("event=relay_bad_reply status=%d type=%s", resp.status_code, type(data).__name__)
            raise RelayError("Unexpected response from AI")

        return data.get("message") or ""

    async def aclose(self) -> None:
        await self._client.aclose()
