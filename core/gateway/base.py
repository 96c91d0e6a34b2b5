"""Shared plumbing for gateways that talk to the OpenAI API."""

import asyncio
import functools
from typing import Any, Callable, TypeVar

from openai import OpenAI

from app.config import get_settings
from core.usage_tracker import UsageTracker, usage_tracker

T = TypeVar("T")


class OpenAIGateway:
    """Base class holding a lazily created OpenAI client.

    The client is created on first use so that constructing a gateway never
    requires credentials (tests and offline tooling inject their own).
    """

    def __init__(
        self,
        client: OpenAI | None = None,
        tracker: UsageTracker | None = None,
    ) -> None:
        self._client = client
        self.tracker = tracker or usage_tracker

    @property
    def client(self) -> OpenAI:
        """Get or create OpenAI client (lazy initialization)."""
        if self._client is None:
            settings = get_settings()
            if not settings.openai_api_key or settings.openai_api_key in ("", "your_openai_api_key_here"):
                raise ValueError("OpenAI API key not configured. Set OPENAI_API_KEY in .env")
            self._client = OpenAI(api_key=settings.openai_api_key)
        return self._client

    async def _run_blocking(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking SDK call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
