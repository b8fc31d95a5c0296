"""LLM Client — Instructor + any OpenAI-compatible endpoint (Ollama by default).

Backs the relationship-graph and summary-report generators. Point LLM_BASE_URL
at a hosted provider (and set LLM_API_KEY) to use a cloud model instead.
"""

import os

import instructor
import requests
from loguru import logger
from openai import OpenAI
from pydantic import BaseModel


LLM_BASE_URL = os.getenv("LLM_BASE_URL", "http://localhost:11434/v1")
LLM_API_KEY = os.getenv("LLM_API_KEY", "ollama")
LLM_MODEL = os.getenv("LLM_MODEL", "qwen2.5:3b")


def _openai_client(base_url: str | None = None, timeout: float = 120) -> OpenAI:
    return OpenAI(base_url=base_url or LLM_BASE_URL, api_key=LLM_API_KEY, timeout=timeout)


def _messages(prompt: str, system_prompt: str | None) -> list[dict]:
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


def extract_structured(
    prompt: str,
    response_model: type[BaseModel],
    model: str | None = None,
    system_prompt: str | None = None,
    max_retries: int = 2,
    base_url: str | None = None,
    timeout: float = 120,
) -> BaseModel:
    """Extract structured data from text via Instructor (JSON mode).

    Args:
        prompt: The user prompt (usually the flattened transcript)
        response_model: Pydantic model class for structured output
        model: Model name (defaults to LLM_MODEL)
        system_prompt: Optional system prompt for context
        max_retries: Instructor retry count on schema validation failure
        timeout: Request timeout in seconds

    Returns:
        Instance of response_model
    """
    client = instructor.from_openai(
        _openai_client(base_url, timeout),
        mode=instructor.Mode.JSON,
    )
    return client.chat.completions.create(
        model=model or LLM_MODEL,
        response_model=response_model,
        messages=_messages(prompt, system_prompt),
        max_retries=max_retries,
    )


def extract_raw(
    prompt: str,
    model: str | None = None,
    system_prompt: str | None = None,
    timeout: float = 120,
    base_url: str | None = None,
) -> str:
    """Raw LLM completion — no Instructor, no schema validation.

    Returns:
        Raw text response from the model ("" if the model returned nothing)
    """
    client = _openai_client(base_url, timeout)
    response = client.chat.completions.create(
        model=model or LLM_MODEL,
        messages=_messages(prompt, system_prompt),
    )
    return response.choices[0].message.content or ""


def check_llm_health() -> dict:
    """Check if the LLM endpoint is reachable and which models it serves."""
    try:
        resp = requests.get(f"{LLM_BASE_URL.rstrip('/')}/models", headers={"Authorization": f"Bearer {LLM_API_KEY}"}, timeout=5)
        if resp.status_code == 200:
            models = [m.get("id") for m in resp.json().get("data", [])]
            return {"status": "healthy", "models": models}
        return {"status": "error", "detail": f"HTTP {resp.status_code}"}
    except requests.ConnectionError:
        logger.warning(f"LLM endpoint unreachable at {LLM_BASE_URL}")
        return {"status": "unreachable", "detail": f"Cannot connect to {LLM_BASE_URL}"}
    except requests.RequestException as e:
        return {"status": "error", "detail": str(e)}
