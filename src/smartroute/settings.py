from __future__ import annotations

import os
from dataclasses import dataclass, asdict

_SECRET_FIELDS = {
    "api_key",
    "openai_api_key",
    "anthropic_api_key",
    "deepseek_api_key",
    "oauth_client_secret",
}


@dataclass(frozen=True)
class Settings:
    """Per-call configuration supplied by the conversation layer.

    The dispatcher never mutates an instance; it keeps the last one it
    initialized with only to notice when provider, model, credentials or the
    workspace connection flag change.
    """

    provider: str = "openai"
    model: str | None = None
    custom_model: str | None = None
    api_key: str | None = None  # generic key, used when no per-provider key is set
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    deepseek_api_key: str | None = None
    workspace_connected: bool = False
    oauth_client_id: str | None = None
    oauth_client_secret: str | None = None
    temperature: float = 0.5

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            provider=os.getenv("LLM_PROVIDER", "openai"),
            model=os.getenv("LLM_MODEL") or None,
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            deepseek_api_key=os.getenv("DEEPSEEK_API_KEY") or None,
            workspace_connected=os.getenv("WORKSPACE_CONNECTED", "").lower() in {"1", "true", "yes"},
            oauth_client_id=os.getenv("GOOGLE_OAUTH_CLIENT_ID") or None,
            oauth_client_secret=os.getenv("GOOGLE_OAUTH_CLIENT_SECRET") or None,
        )

    def api_key_for(self, provider: str | None = None) -> str | None:
        provider = (provider or self.provider).lower()
        if provider == "openai":
            return self.openai_api_key or self.api_key
        if provider in {"anthropic", "claude"}:
            return self.anthropic_api_key or self.api_key
        if provider == "deepseek":
            return self.deepseek_api_key or self.api_key
        return self.api_key

    def resolved_model(self) -> str | None:
        return self.model or self.custom_model

    def fingerprint(self) -> tuple:
        """Fields whose change forces the tool backends to be rebuilt."""
        return (
            self.provider.lower(),
            self.model,
            self.custom_model,
            self.workspace_connected,
            self.api_key,
            self.openai_api_key,
            self.anthropic_api_key,
            self.deepseek_api_key,
        )

    def to_dict(self):
        data = asdict(self)
        for name in _SECRET_FIELDS:
            data[name] = "SET" if data[name] else None
        return data
