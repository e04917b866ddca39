import os
from typing import Literal, Optional

from pydantic import BaseModel

Provider = Literal["openai", "anthropic"]

DEFAULT_MODELS = {
    "openai": "gpt-3.5-turbo",
    "anthropic": "claude-3-opus-20240229",
}
DEFAULT_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "anthropic": "https://api.anthropic.com",
}
API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}
CONSOLE_URLS = {
    "openai": "platform.openai.com",
    "anthropic": "console.anthropic.com",
}

# Prompt input limits (characters)
MAX_RESUME_CHARS = 5000
MAX_JOB_CHARS = 3000

# Output token budgets per call site
QUESTION_MAX_TOKENS = 2000
SUGGESTION_MAX_TOKENS = 4000
RESUME_MAX_TOKENS = 8000
CONSTRAINED_RESUME_MAX_TOKENS = 4096  # haiku-class models cap output at 4096

INITIAL_QUESTION_COUNT = 3
MAX_FOLLOWUP_ROUNDS = 2


class AIConfig(BaseModel):
    """Provider selection and request parameters for one gateway instance"""

    provider: Provider = "openai"
    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 60.0
    temperature: float = 0.7

    @property
    def model_id(self) -> str:
        return self.model or DEFAULT_MODELS[self.provider]

    @property
    def endpoint(self) -> str:
        return (self.base_url or DEFAULT_BASE_URLS[self.provider]).rstrip("/")

    @property
    def api_key_env(self) -> str:
        return API_KEY_ENV[self.provider]

    @property
    def console_url(self) -> str:
        return CONSOLE_URLS[self.provider]

    @property
    def has_constrained_output(self) -> bool:
        return "haiku" in self.model_id.lower()


def load_ai_config() -> AIConfig:
    """Build an AIConfig from the process environment.

    AI_PROVIDER selects the backend; the provider-specific key wins over
    the generic AI_API_KEY.
    """
    provider = (os.getenv("AI_PROVIDER") or "openai").strip().lower()
    if provider not in DEFAULT_MODELS:
        raise ValueError(f"Unsupported AI_PROVIDER '{provider}' (expected openai or anthropic)")
    api_key = os.getenv(API_KEY_ENV[provider]) or os.getenv("AI_API_KEY") or None
    base_url_env = "OPENAI_BASE_URL" if provider == "openai" else "ANTHROPIC_BASE_URL"
    return AIConfig(
        provider=provider,
        api_key=api_key,
        model=os.getenv("AI_MODEL") or None,
        base_url=os.getenv(base_url_env) or None,
        timeout=float(os.getenv("AI_TIMEOUT", "60")),
    )
