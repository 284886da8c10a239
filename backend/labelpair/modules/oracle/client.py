# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Oracle Transport
The engine talks to the tie-break oracle through the OracleClient protocol:
one async call, system + user text in, raw reply text out.

OpenAIOracleClient is the production transport (chat completions,
temperature 0, max_retries=0). Any transport failure or timeout surfaces
as OracleUnavailableError, which aborts the run.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

import openai
from openai import AsyncOpenAI

from labelpair.config import Settings, get_settings
from labelpair.core.errors import OracleUnavailableError
from labelpair.utils.logger import get_logger

log = get_logger(__name__)


@runtime_checkable
class OracleClient(Protocol):
    async def complete(self, system: str, user: str) -> str:
        """Send one request and return the raw reply text."""
        ...


class OpenAIOracleClient:
    """OracleClient backed by the OpenAI chat completions API."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._owns_client = client is None
        if client is None:
            try:
                client = AsyncOpenAI(
                    api_key=self._settings.openai_api_key,
                    timeout=self._settings.oracle_timeout_s,
                    max_retries=0,
                )
            except openai.OpenAIError as exc:
                # Raised when no API key is configured
                raise OracleUnavailableError(f"tie-break oracle not configured: {exc}") from exc
        self._client = client

    async def aclose(self) -> None:
        """Release the HTTP pool of a self-created AsyncOpenAI client."""
        if self._owns_client:
            await self._client.close()

    async def complete(self, system: str, user: str) -> str:
        model = self._settings.oracle_model
        log.info("oracle_request_sent", model=model, user_chars=len(user))
        try:
            response = await self._client.chat.completions.create(
                model=model,
                temperature=0,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            )
        except openai.OpenAIError as exc:
            log.error("oracle_unavailable", model=model,
                      error=f"{type(exc).__name__}: {exc}")
            raise OracleUnavailableError(f"tie-break oracle call failed: {exc}") from exc

        text = response.choices[0].message.content if response.choices else None
        log.info("oracle_reply_received", chars=len(text or ""))
        return text or ""
