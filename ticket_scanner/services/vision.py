"""
Client for the hosted vision-language model.

Talks to an OpenAI-compatible chat completions endpoint (OpenRouter by
default). Instances are built explicitly from settings and passed to the
services that need them, so tests can substitute their own client.
"""

import httpx
from loguru import logger
from ..core.errors import ConfigurationError, ExternalServiceError


class VisionClient:
    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://openrouter.ai/api/v1",
        model: str = "google/gemini-2.5-flash",
        timeout: float = 120.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "VisionClient":
        return cls(
            api_key=settings.openrouter_api_key,
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            timeout=settings.llm_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def require_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("OPENROUTER_API_KEY not configured")

    async def complete(self, prompt: str, images: list[str], max_tokens: int = 4096) -> str:
        """
        Send a prompt plus images (data URLs or http URLs) as a single user turn.

        Returns the text of the first choice, or "" when the model sent none.
        """
        self.require_configured()

        content = [{"type": "text", "text": prompt}]
        content.extend({"type": "image_url", "image_url": {"url": url}} for url in images)
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": content}],
            "max_tokens": max_tokens,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Vision model request failed: {e}")
            raise ExternalServiceError(f"Vision model request failed: {e}") from e

        if r.status_code >= 400:
            detail = r.text[:500]
            try:
                detail = r.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                pass
            logger.error(f"Vision model returned HTTP {r.status_code}: {detail}")
            raise ExternalServiceError(f"Vision model returned HTTP {r.status_code}: {detail}")

        try:
            message = r.json()["choices"][0]["message"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ExternalServiceError("Vision model returned an unexpected response") from e

        text = message.get("content") if isinstance(message, dict) else None
        if isinstance(text, list):
            # Some providers return content as typed parts
            text = "".join(part.get("text", "") for part in text if isinstance(part, dict))
        return text or ""
