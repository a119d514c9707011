"""
Provider Adapter - one request/response contract over every LLM provider

Dispatches a UniversalRequest on the model's wire format:
- openai_chat:        chat completions, max_tokens + temperature
- openai_reasoning:   chat completions, max_completion_tokens (no temperature)
- anthropic_messages: messages API with a separate system field
- gemini_generate:    google-genai generate_content (sync SDK, run in a thread)

On any primary failure the same request is retried once on the model's
backup. If that fails too, ProviderError carries the primary's message.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Tuple

from anthropic import AsyncAnthropic
from google import genai
from google.genai import types as genai_types
from httpx import Timeout
from openai import AsyncOpenAI

from config import Settings, get_settings
from exceptions import ConfigurationError, ProviderError
from orchestrator.pipeline_config import get_model_descriptor
from schemas.pipeline_types import (
    ModelDescriptor,
    ProviderKind,
    UniversalRequest,
    UniversalResponse,
    WireFormat,
)
from services.cost_calculator import calculate_cost
from services.secret_manager import SecretManager, get_secret_manager

logger = logging.getLogger(__name__)

_API_KEY_NAMES = {
    ProviderKind.OPENAI: "OPENAI_API_KEY",
    ProviderKind.ANTHROPIC: "ANTHROPIC_API_KEY",
    ProviderKind.GEMINI: "GEMINI_API_KEY",
}


class ProviderAdapter:
    """
    Multi-provider LLM client

    Clients are created lazily per (provider, api key) and reused, so a
    rotated key produces a fresh client without restarting the worker.
    """

    def __init__(
        self,
        secret_manager: Optional[SecretManager] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.secrets = secret_manager or get_secret_manager()
        self._clients: Dict[Tuple[ProviderKind, str], Any] = {}

    # ─────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────

    async def execute_request(self, request: UniversalRequest) -> UniversalResponse:
        """
        Execute a request on its model, failing over to the backup once

        Raises:
            ConfigurationError: unknown model id
            ProviderError: primary (and backup, if any) failed
        """
        descriptor = get_model_descriptor(request.model_id)

        try:
            return await self._call(descriptor, request)
        except asyncio.CancelledError:
            raise
        except Exception as primary_error:
            primary_message = self._describe(primary_error)
            logger.warning(
                f"[ProviderAdapter] {descriptor.model_id} failed: {primary_message}"
            )

            backup = self._resolve_backup(descriptor)
            if backup is None:
                raise ProviderError(primary_message, model_id=descriptor.model_id) from primary_error

            logger.info(
                f"[ProviderAdapter] Falling back {descriptor.model_id} -> {backup.model_id}"
            )
            try:
                return await self._call(backup, request)
            except asyncio.CancelledError:
                raise
            except Exception as backup_error:
                backup_message = self._describe(backup_error)
                logger.error(
                    f"[ProviderAdapter] Backup {backup.model_id} failed too: {backup_message}"
                )
                raise ProviderError(
                    primary_message,
                    model_id=descriptor.model_id,
                    backup_model_id=backup.model_id,
                    backup_error=backup_message,
                ) from primary_error

    # ─────────────────────────────────────────────────
    # Dispatch
    # ─────────────────────────────────────────────────

    async def _call(self, descriptor: ModelDescriptor, request: UniversalRequest) -> UniversalResponse:
        start_time = time.monotonic()
        max_tokens = min(request.max_tokens, descriptor.max_output_tokens)

        if descriptor.wire_format in (WireFormat.OPENAI_CHAT, WireFormat.OPENAI_REASONING):
            content, tokens_in, tokens_out = await self._call_openai(descriptor, request, max_tokens)
        elif descriptor.wire_format == WireFormat.ANTHROPIC_MESSAGES:
            content, tokens_in, tokens_out = await self._call_anthropic(descriptor, request, max_tokens)
        elif descriptor.wire_format == WireFormat.GEMINI_GENERATE:
            content, tokens_in, tokens_out = await self._call_gemini(descriptor, request, max_tokens)
        else:
            raise ConfigurationError(f"Unsupported wire format: {descriptor.wire_format}")

        elapsed = time.monotonic() - start_time
        logger.info(
            f"[ProviderAdapter] {descriptor.model_id} ok - {elapsed:.2f}s, "
            f"tokens {tokens_in}/{tokens_out}, {len(content)} chars"
        )

        return UniversalResponse(
            content=content,
            input_tokens=tokens_in,
            output_tokens=tokens_out,
            cost=calculate_cost(tokens_in, tokens_out, descriptor),
            model_used=descriptor.model_id,
            provider=descriptor.provider,
        )

    async def _call_openai(
        self,
        descriptor: ModelDescriptor,
        request: UniversalRequest,
        max_tokens: int,
    ) -> Tuple[str, int, int]:
        client: AsyncOpenAI = await self._get_client(descriptor.provider)

        params: Dict[str, Any] = {
            "model": descriptor.api_model,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
        }
        if descriptor.wire_format == WireFormat.OPENAI_REASONING:
            # reasoning models reject max_tokens and a custom temperature
            params["max_completion_tokens"] = max_tokens
        else:
            params["max_tokens"] = max_tokens
            params["temperature"] = request.temperature

        if request.json_schema:
            params["response_format"] = {
                "type": "json_schema",
                "json_schema": request.json_schema,
            }

        response = await client.chat.completions.create(**params)
        content = response.choices[0].message.content or ""
        usage = response.usage
        return (
            content,
            usage.prompt_tokens if usage else 0,
            usage.completion_tokens if usage else 0,
        )

    async def _call_anthropic(
        self,
        descriptor: ModelDescriptor,
        request: UniversalRequest,
        max_tokens: int,
    ) -> Tuple[str, int, int]:
        client: AsyncAnthropic = await self._get_client(descriptor.provider)

        response = await client.messages.create(
            model=descriptor.api_model,
            max_tokens=max_tokens,
            temperature=request.temperature,
            system=request.system_prompt,
            messages=[{"role": "user", "content": request.user_prompt}],
        )
        content = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        return content, response.usage.input_tokens, response.usage.output_tokens

    async def _call_gemini(
        self,
        descriptor: ModelDescriptor,
        request: UniversalRequest,
        max_tokens: int,
    ) -> Tuple[str, int, int]:
        client: genai.Client = await self._get_client(descriptor.provider)

        config = genai_types.GenerateContentConfig(
            system_instruction=request.system_prompt,
            temperature=request.temperature,
            max_output_tokens=max_tokens,
            response_mime_type="application/json" if request.json_schema else None,
        )

        # google-genai's sync client runs in a worker thread; the request may
        # still be billed after the timeout fires
        response = await asyncio.wait_for(
            asyncio.to_thread(
                client.models.generate_content,
                model=descriptor.api_model,
                contents=request.user_prompt,
                config=config,
            ),
            timeout=self.settings.timeout.llm,
        )

        tokens_in = tokens_out = 0
        usage = getattr(response, "usage_metadata", None)
        if usage:
            tokens_in = getattr(usage, "prompt_token_count", 0) or 0
            tokens_out = getattr(usage, "candidates_token_count", 0) or 0
        return response.text or "", tokens_in, tokens_out

    # ─────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────

    async def _get_client(self, provider: ProviderKind) -> Any:
        key_name = _API_KEY_NAMES[provider]
        api_key = await self.secrets.get_secret(key_name)
        if not api_key:
            raise ProviderError(f"{key_name} not configured", model_id=provider.value)

        cache_key = (provider, api_key)
        client = self._clients.get(cache_key)
        if client is None:
            client = self._build_client(provider, api_key)
            self._clients[cache_key] = client
            logger.info(f"[ProviderAdapter] {provider.value} client created (key: {api_key[:8]}...)")
        return client

    def _build_client(self, provider: ProviderKind, api_key: str) -> Any:
        timeout = Timeout(self.settings.timeout.llm, connect=self.settings.timeout.llm_connect)
        if provider == ProviderKind.OPENAI:
            return AsyncOpenAI(api_key=api_key, timeout=timeout)
        if provider == ProviderKind.ANTHROPIC:
            return AsyncAnthropic(api_key=api_key, timeout=timeout)
        return genai.Client(api_key=api_key)

    @staticmethod
    def _resolve_backup(descriptor: ModelDescriptor) -> Optional[ModelDescriptor]:
        if not descriptor.backup:
            return None
        try:
            return get_model_descriptor(descriptor.backup)
        except ConfigurationError:
            logger.warning(
                f"[ProviderAdapter] Backup {descriptor.backup} of {descriptor.model_id} is not registered"
            )
            return None

    def _describe(self, error: Exception) -> str:
        if isinstance(error, asyncio.TimeoutError):
            return f"Request timed out after {self.settings.timeout.llm}s"
        message = getattr(error, "message", None) or str(error)
        return message or type(error).__name__


_provider_adapter: Optional[ProviderAdapter] = None


def get_provider_adapter() -> ProviderAdapter:
    """ProviderAdapter singleton"""
    global _provider_adapter
    if _provider_adapter is None:
        _provider_adapter = ProviderAdapter()
    return _provider_adapter
