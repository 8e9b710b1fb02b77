"""
config.py — Uni-GPT Voice Assistant · Runtime Configuration
===========================================================
Pydantic models for every tunable parameter across both components.
Deserialises from JSON.  Used by:
  • server.py      : relay generation parameters + provider credential
  • controller.py  : history window, re-listen delay, speech parameters
  • console.py     : relay URL, continuous mode
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

log = logging.getLogger("unigpt.config")

# ---------------------------------------------------------------------------
# Default system prompt (kept here so config.py is the single source of truth)
# ---------------------------------------------------------------------------

DEFAULT_SYSTEM_PROMPT = """\
You are Uni-GPT, a professional voice assistant for UniQube bathroom and kitchen pods. \
You provide concise, helpful responses for:

- Calendar management (checking schedule, creating events)
- Email summaries (important/urgent messages)
- Weather information (Dubai/UAE focused)
- News briefings (90-second summaries)
- Kitchen recipes and cooking timers
- Grocery list management
- Smart home controls (lights, exhaust fans)

Keep responses brief and natural for voice interaction. Be friendly, professional, \
and contextually aware. When users ask about their schedule, weather, or specific \
information, provide clear, actionable responses."""

DEFAULT_MODEL = "llama-3.3-70b-versatile"
DEFAULT_RELAY_URL = "http://127.0.0.1:8000"
DEFAULT_CONFIG_PATH = "config.json"


# ---------------------------------------------------------------------------
# Per-component config sections
# ---------------------------------------------------------------------------

class RelayConfig(BaseModel):
    """Completion provider parameters applied by the relay on every call."""
    model: str = Field(
        default_factory=lambda: os.getenv("GROQ_LLM_MODEL", DEFAULT_MODEL),
        description="Groq model ID",
    )
    api_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("GROQ_API_KEY"),
        description="Groq API credential",
        repr=False,
    )
    max_tokens: int = Field(default=500, ge=1, description="Max response tokens")
    presence_penalty: float = Field(default=0.6, ge=-2.0, le=2.0, description="Penalize topic repetition")
    frequency_penalty: float = Field(default=0.3, ge=-2.0, le=2.0, description="Penalize repeated tokens")
    default_temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Used when the caller sends none")
    fallback_message: str = Field(default="No response generated", description="Reply when the provider returns no content")


class SpeechConfig(BaseModel):
    """Recognition locale and synthesis voice parameters."""
    locale: str = Field(default="en-US", description="Recognition + voice locale")
    rate: float = Field(default=1.0, ge=0.1, le=10.0, description="Speaking rate")
    pitch: float = Field(default=1.0, ge=0.0, le=2.0, description="Voice pitch")
    volume: float = Field(default=1.0, ge=0.0, le=1.0, description="Output volume")
    preferred_voice: str = Field(default="Google", description="Substring matched against voice names")


class ControllerConfig(BaseModel):
    """Turn-taking parameters for the conversation controller."""
    history_window: int = Field(default=10, ge=0, description="History entries sent with each relay call")
    relisten_delay_sec: float = Field(default=0.5, ge=0.0, le=10.0, description="Continuous-mode re-listen delay")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Temperature sent to the relay")
    continuous: bool = Field(default=False, description="Re-listen automatically after each reply")
    relay_url: str = Field(
        default_factory=lambda: os.getenv("UNIGPT_RELAY_URL", DEFAULT_RELAY_URL),
        description="Base URL of the relay endpoint",
    )


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------

class AssistantConfig(BaseModel):
    """Complete runtime configuration for the voice assistant."""
    relay: RelayConfig = Field(default_factory=RelayConfig)
    speech: SpeechConfig = Field(default_factory=SpeechConfig)
    controller: ControllerConfig = Field(default_factory=ControllerConfig)
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, description="System prompt for the LLM")

    @classmethod
    def load(cls, path: str | Path | None = None) -> "AssistantConfig":
        """Load config from a JSON file.  Returns defaults if file doesn't exist."""
        p = Path(path or os.getenv("UNIGPT_CONFIG", DEFAULT_CONFIG_PATH))
        if not p.exists():
            log.info("event=config_load_defaults path=%s", p)
            return cls()
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
            config = cls.model_validate(data)
            log.info("event=config_loaded path=%s", p)
            return config
        except Exception as exc:
            log.warning("event=config_load_error path=%s error=%s fallback=defaults", p, exc)
            return cls()
