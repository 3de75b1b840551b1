"""
LLM inference service for StudyGenie.

Talks to an Ollama server (POST {ollama_url}/api/chat) in JSON mode.
The model name comes from settings.ollama_model.

Usage:
    result_dict = await chat_json(system_prompt, user_prompt)
"""
from __future__ import annotations

import json
import logging

import httpx

from studygenie.config import settings

logger = logging.getLogger(__name__)


class LLMUnavailableError(Exception):
    """Raised when no model is configured or the Ollama server can't be reached."""


async def _model_is_installed(client: httpx.AsyncClient, model: str) -> bool:
    res = await client.get(f"{settings.ollama_url}/api/tags", timeout=1.5)
    if res.status_code != 200:
        return False
    prefixes = {m["name"].split(":")[0] for m in res.json().get("models", [])}
    return model.split(":")[0] in prefixes


async def chat_json(
    system_prompt: str,
    user_prompt: str,
    max_tokens: int = 1024,
) -> dict:
    """
    Send a chat request to the LLM expecting JSON output.

    Returns a parsed dict.
    Raises LLMUnavailableError if Ollama or the configured model is missing.
    Raises json.JSONDecodeError if the model returns invalid JSON (caller handles).
    """
    model = settings.ollama_model
    if not model:
        raise LLMUnavailableError("No LLM configured: set STUDYGENIE_OLLAMA_MODEL.")

    payload = {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "format": "json",
        "stream": False,
        "options": {"num_predict": max_tokens},
    }
    try:
        async with httpx.AsyncClient() as client:
            if not await _model_is_installed(client, model):
                raise LLMUnavailableError(f"Ollama model {model!r} is not installed")
            res = await client.post(
                f"{settings.ollama_url}/api/chat",
                json=payload,
                timeout=settings.llm_timeout,
            )
            res.raise_for_status()
            content = res.json()["message"]["content"]
    except httpx.HTTPError as e:
        logger.warning("Ollama request failed: %s", e)
        raise LLMUnavailableError(f"Ollama request failed: {e}") from e

    return json.loads(content)
