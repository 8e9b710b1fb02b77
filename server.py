"""
server.py — Uni-GPT Voice Assistant · FastAPI Relay Endpoint
============================================================
Stateless relay between the browser front-end and the completion provider.
Every call is independent; nothing is kept between requests.

Endpoints
---------
  POST /api/chat   { messages, temperature? } → { message } | { error }
  GET  /health     Service liveness

Status codes
------------
  200  reply text from the first completion choice
  400  "Messages array is required" (messages missing / not a list)
  500  provider failure, carrying the provider's message when it has one
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import AssistantConfig
from relay import MESSAGES_REQUIRED, CompletionRelay, InvalidInput, RelayError, parse_request

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if os.getenv("UNIGPT_DEBUG") else logging.INFO,
    format="%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s – %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("unigpt.server")

# ---------------------------------------------------------------------------
# Config (from environment + optional JSON file)
# ---------------------------------------------------------------------------
config = AssistantConfig.load()

SERVER_HOST = os.getenv("UNIGPT_HOST", "0.0.0.0")
SERVER_PORT = int(os.getenv("UNIGPT_PORT", "8000"))

relay = CompletionRelay(config.relay)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class ChatReply(BaseModel):
    message: str


class ChatError(BaseModel):
    error: str


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

@asynccontextmanager
async def _lifespan(app: FastAPI):
    log.info("event=server_start model=%s", relay.model)
    yield
    await relay.aclose()
    log.info("event=server_stopped")


app = FastAPI(
    title="Uni-GPT Relay",
    version="1.0.0",
    description="Chat relay for the Uni-GPT voice assistant",
    lifespan=_lifespan,
)

# The page may be served from anywhere during development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(exc: RelayError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ChatError(error=exc.message).model_dump(),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.post(
    "/api/chat",
    response_model=ChatReply,
    responses={400: {"model": ChatError}, 500: {"model": ChatError}},
)
async def chat(request: Request) -> JSONResponse:
    """
    Forward one conversation to the completion provider.

    Example:
        { "messages": [{"role": "system", "content": "..."},
                       {"role": "user",   "content": "What's on my calendar today?"}],
          "temperature": 0.7 }
    """
    try:
        body: Any = await request.json()
    except ValueError as exc:
        log.warning("event=chat_rejected reason=invalid_json error=%s", exc)
        return _error(InvalidInput(MESSAGES_REQUIRED))

    try:
        chat_request = parse_request(body, default_temperature=config.relay.default_temperature)
    except InvalidInput as exc:
        log.warning("event=chat_rejected reason=invalid_input")
        return _error(exc)

    try:
        reply = await relay.complete(chat_request)
    except RelayError as exc:
        return _error(exc)

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=ChatReply(message=reply).model_dump(),
    )


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness probe."""
    return JSONResponse({
        "status": "ok",
        "model":  relay.model,
    })


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)
