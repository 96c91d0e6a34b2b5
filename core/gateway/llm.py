"""Language model gateway.

Wraps the OpenAI chat completions API behind a single call:
``invoke_model(prompt, schema=None)``. With a JSON schema the model is asked
for a JSON object matching it and the parsed ``dict`` is returned; without
one the reply text is returned as-is.
"""

import json
import logging
import re
import time
from typing import Any

from openai import OpenAI

from app.config import get_settings
from core.errors import ModelInvocationError
from core.gateway.base import OpenAIGateway
from core.usage_tracker import CallStatus, UsageTracker

logger = logging.getLogger("simplidoc.gateway.llm")


JSON_SYSTEM_PROMPT = """You are a careful assistant that answers only with a single JSON object.

The object must follow this JSON schema:
{schema}

Rules:
- Output JSON only, no markdown fences and no commentary
- Use the property names exactly as given
- Omit nothing you can answer; use an empty string or empty list if unsure"""


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse a JSON object from model output with repair strategies.

    Args:
        text: Raw response text from the model.

    Returns:
        The parsed object.

    Raises:
        ValueError: If no JSON object can be recovered.
    """
    # Strategy 1: Extract from markdown code blocks
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0]
    elif "```" in text:
        parts = text.split("```")
        if len(parts) >= 2:
            text = parts[1]

    text = text.strip()

    # Strategy 2: Try direct parsing
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    # Strategy 3: Outermost braces
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        text = text[start:end + 1]
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass

    # Strategy 4: Repair common issues
    repaired = re.sub(r',\s*([}\]])', r'\1', text)  # Remove trailing commas
    try:
        data = json.loads(repaired)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    raise ValueError("Model response did not contain a JSON object")


class LLMClient(OpenAIGateway):
    """Gateway for text generation, with optional structured output."""

    MAX_COMPLETION_TOKENS = 1500
    TEMPERATURE = 0.3

    def __init__(
        self,
        client: OpenAI | None = None,
        tracker: UsageTracker | None = None,
        model: str | None = None,
    ) -> None:
        super().__init__(client=client, tracker=tracker)
        self.model = model or get_settings().summary_model

    def _build_messages(self, prompt: str, schema: dict[str, Any] | None) -> list[dict[str, str]]:
        messages: list[dict[str, str]] = []
        if schema is not None:
            messages.append({
                "role": "system",
                "content": JSON_SYSTEM_PROMPT.format(schema=json.dumps(schema, indent=2)),
            })
        messages.append({"role": "user", "content": prompt})
        return messages

    def invoke(
        self,
        prompt: str,
        schema: dict[str, Any] | None = None,
        operation: str = "INVOKE_MODEL",
        reference: str = "-",
    ) -> str | dict[str, Any]:
        """Call the model (synchronous).

        Args:
            prompt: Fully assembled user prompt.
            schema: Optional JSON schema for structured output.
            operation: Label used in the usage log.
            reference: Identifier of what is being processed, for the usage log.

        Returns:
            Parsed dict when ``schema`` is given, otherwise the reply text.

        Raises:
            ModelInvocationError: On any API, transport or parsing failure.
        """
        start_time = time.time()
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": self._build_messages(prompt, schema),
            "max_tokens": self.MAX_COMPLETION_TOKENS,
            "temperature": self.TEMPERATURE,
        }
        if schema is not None:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**kwargs)
            usage = response.usage
            input_tokens = usage.prompt_tokens if usage else 0
            output_tokens = usage.completion_tokens if usage else 0
            content = (response.choices[0].message.content or "").strip()
            if not content:
                raise ValueError("Model returned an empty response")
            result: str | dict[str, Any] = parse_json_object(content) if schema is not None else content
        except Exception as e:
            latency_ms = int((time.time() - start_time) * 1000)
            self.tracker.log_call(self.tracker.create_record(
                operation=operation,
                reference=reference,
                model=self.model,
                input_tokens=0,
                output_tokens=0,
                latency_ms=latency_ms,
                status=CallStatus.FAILURE,
                error_message=str(e),
            ))
            raise ModelInvocationError(f"Model invocation failed: {e}") from e

        latency_ms = int((time.time() - start_time) * 1000)
        self.tracker.log_call(self.tracker.create_record(
            operation=operation,
            reference=reference,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            latency_ms=latency_ms,
            status=CallStatus.SUCCESS,
            extra_data={"structured": schema is not None},
        ))
        return result

    async def invoke_model(
        self,
        prompt: str,
        schema: dict[str, Any] | None = None,
        operation: str = "INVOKE_MODEL",
        reference: str = "-",
    ) -> str | dict[str, Any]:
        """Call the model (asynchronous). See ``invoke``."""
        return await self._run_blocking(
            self.invoke, prompt, schema, operation=operation, reference=reference
        )
