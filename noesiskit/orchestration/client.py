from __future__ import annotations
import json
import httpx
from typing import Any, Dict, List, Optional
from .settings import settings

class ChatError(RuntimeError):
    """The endpoint answered, but not with a usable JSON object."""

class ChatClient:
    """Single-shot JSON chat completion against an OpenAI-compatible endpoint."""

    def __init__(self, api_key: Optional[str] = None, *, base_url: Optional[str] = None, model: Optional[str] = None,
            timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.openai_model
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout or settings.openai_timeout, transport=transport)

    async def complete_json(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        if not self.api_key:
            raise ChatError("OPENAI_API_KEY is not configured")
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "response_format": {"type": "json_object"},
        }
        r = await self._client.post(
            f"{self.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=payload,
        )
        r.raise_for_status()
        try:
            content = r.json()["choices"][0]["message"]["content"]
            result = json.loads(content)
        except (KeyError, IndexError, TypeError, ValueError) as err:
            raise ChatError(f"Unexpected chat completion response: {r.text[:200]}") from err
        if not isinstance(result, dict):
            raise ChatError(f"Expected a JSON object, got {type(result).__name__}")
        return result

    async def aclose(self) -> None:
        await self._client.aclose()
