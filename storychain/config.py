"""AI generation settings.

The generator receives an explicit AIConfig instead of reading the
environment itself. AIConfig.from_env() is the single place that looks at
DEEPSEEK_* variables; the app loads .env with python-dotenv beforehand.
"""

from __future__ import annotations

import os

from pydantic import BaseModel

DEFAULT_API_URL = "https://api.deepseek.com/v1/chat/completions"
DEFAULT_MODEL = "deepseek-chat"


class AIConfig(BaseModel):
    api_key: str = ""
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    temperature: float = 0.8
    max_tokens: int = 800
    timeout: float = 120.0

    @classmethod
    def from_env(cls) -> AIConfig:
        return cls(
            api_key=os.getenv("DEEPSEEK_API_KEY", ""),
            api_url=os.getenv("DEEPSEEK_API_URL") or DEFAULT_API_URL,
            model=os.getenv("DEEPSEEK_MODEL") or DEFAULT_MODEL,
        )

    @property
    def ai_enabled(self) -> bool:
        """True when the API key is present and looks like a bearer token."""
        key = self.api_key.strip()
        return bool(key) and not any(c.isspace() for c in key)

    def status(self) -> dict[str, object]:
        if self.ai_enabled:
            return {
                "configured": True,
                "message": "DeepSeek API configured successfully",
                "provider": "DeepSeek",
            }
        return {
            "configured": False,
            "message": "DeepSeek API key not found in environment variables",
            "provider": "Template Generator",
        }
