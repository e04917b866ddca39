"""
Single-call LLM gateway over OpenAI-compatible and Anthropic endpoints.

The gateway sends one prompt as one user message and returns the raw text
of the reply. Provider failures are mapped onto the curator error taxonomy;
nothing is retried here.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from .config import AIConfig, CONSTRAINED_RESUME_MAX_TOKENS, RESUME_MAX_TOKENS
from .errors import CredentialInvalid, CredentialMissing, ProviderError, QuotaExceeded

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        return str(err.get("message") or err)
    return str(err or body)[:500]


class LLMGateway:
    """Calls the provider selected by ``config``"""

    def __init__(self, config: AIConfig):
        self.config = config

    @property
    def model(self) -> str:
        return self.config.model_id

    def resume_token_budget(self) -> int:
        # Never request more output than the active model can produce
        if self.config.has_constrained_output:
            return CONSTRAINED_RESUME_MAX_TOKENS
        return RESUME_MAX_TOKENS

    async def complete(self, prompt: str, max_tokens: int) -> str:
        cfg = self.config
        if not cfg.api_key:
            raise CredentialMissing(cfg.provider, cfg.api_key_env, cfg.console_url)

        logger.info("Calling %s model %s (max_tokens=%d, prompt=%d chars)",
                    cfg.provider, cfg.model_id, max_tokens, len(prompt))
        if cfg.provider == "anthropic":
            text = await self._call_anthropic(prompt, max_tokens)
        else:
            text = await self._call_openai(prompt, max_tokens)
        logger.info("%s responded with %d chars", cfg.provider, len(text))
        return text

    async def _call_openai(self, prompt: str, max_tokens: int) -> str:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }
        payload = {
            "model": self.config.model_id,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": self.config.temperature,
        }
        data = await self._post(f"{self.config.endpoint}/chat/completions", headers, payload)
        try:
            return data["choices"][0]["message"].get("content") or ""
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ProviderError("Unexpected response shape from openai", details=str(data)[:500]) from e

    async def _call_anthropic(self, prompt: str, max_tokens: int) -> str:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.config.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
        }
        payload = {
            "model": self.config.model_id,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        data = await self._post(f"{self.config.endpoint}/v1/messages", headers, payload)
        blocks = data.get("content") if isinstance(data, dict) else None
        if not isinstance(blocks, list):
            raise ProviderError("Unexpected response shape from anthropic", details=str(data)[:500])
        for block in blocks:
            if isinstance(block, dict) and block.get("type") == "text":
                return block.get("text") or ""
        return ""

    async def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Dict[str, Any]:
        provider = self.config.provider
        try:
            async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                response = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error("%s request failed: %s", provider, e)
            raise ProviderError(f"{provider} request failed: {e}") from e

        if response.status_code != 200:
            self._raise_for_status(response)
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"{provider} returned a non-JSON response", status=response.status_code) from e

    def _raise_for_status(self, response: httpx.Response) -> None:
        cfg = self.config
        status = response.status_code
        detail: Optional[str] = _error_detail(response)
        logger.error("%s API call failed: %s %s", cfg.provider, status, detail)
        if status == 401:
            raise CredentialInvalid(cfg.provider, cfg.api_key_env, detail)
        if status == 429:
            raise QuotaExceeded(cfg.provider, detail)
        raise ProviderError(f"{cfg.provider} API call failed: {status}", status=status, details=detail)
