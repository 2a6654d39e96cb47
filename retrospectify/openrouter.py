"""OpenRouter API client for making LLM requests."""

import logging
import time
from typing import Any

import httpx

from . import config
from .telemetry import get_tracer, is_telemetry_enabled

logger = logging.getLogger(__name__)


async def query_model(
    model: str,
    messages: list[dict[str, str]],
    timeout: float | None = None,
) -> dict[str, Any] | None:
    """
    Query a single model via OpenRouter API.

    Args:
        model: OpenRouter model identifier (e.g., "openai/gpt-4o")
        messages: List of message dicts with 'role' and 'content'
        timeout: Request timeout in seconds (defaults to config.LLM_TIMEOUT)

    Returns:
        Response dict with 'content' and 'metrics', or None if failed
    """
    tracer = get_tracer()
    span_attributes = {
        "llm.model": model,
        "llm.message_count": len(messages),
    }

    with tracer.start_as_current_span("llm.query_model", attributes=span_attributes) as span:
        headers = {
            "Authorization": f"Bearer {config.OPENROUTER_API_KEY}",
            "Content-Type": "application/json",
        }

        payload = {
            "model": model,
            "messages": messages,
        }

        start_time = time.time()

        try:
            async with httpx.AsyncClient(timeout=timeout or config.LLM_TIMEOUT) as client:
                response = await client.post(
                    config.OPENROUTER_API_URL,
                    headers=headers,
                    json=payload
                )
                response.raise_for_status()

                latency_ms = int((time.time() - start_time) * 1000)
                data = response.json()
                message = data['choices'][0]['message']
                usage = data.get('usage', {})

                result = {
                    'content': message.get('content'),
                    'metrics': {
                        'prompt_tokens': usage.get('prompt_tokens', 0),
                        'completion_tokens': usage.get('completion_tokens', 0),
                        'total_tokens': usage.get('total_tokens', 0),
                        'cost': usage.get('cost', 0.0),
                        'latency_ms': latency_ms,
                        'actual_model': data.get('model'),
                        'request_id': data.get('id'),
                        'provider': data.get('provider'),
                    }
                }

                if is_telemetry_enabled():
                    span.set_attributes({
                        "llm.prompt_tokens": usage.get('prompt_tokens', 0),
                        "llm.completion_tokens": usage.get('completion_tokens', 0),
                        "llm.total_tokens": usage.get('total_tokens', 0),
                        "llm.latency_ms": latency_ms,
                        "llm.provider": data.get('provider', ''),
                    })

                return result

        except Exception as e:
            logger.warning("Error querying model %s: %s", model, e)
            if is_telemetry_enabled():
                span.record_exception(e)
                from opentelemetry.trace import Status, StatusCode
                span.set_status(Status(StatusCode.ERROR, str(e)))
            return None
