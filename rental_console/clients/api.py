import json
from typing import Optional

import httpx
from loguru import logger

from rental_console.exceptions import ApiError


class OrchestratorClient:
    """Thin async client for the unlock-core API; errors are raised, never retried."""

    def __init__(
        self,
        api_base: str,
        timeout_sec: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=api_base.rstrip("/"),
            timeout=timeout_sec,
            headers={"Content-Type": "application/json", "User-Agent": "rental-console/1.0"},
            transport=transport,
        )

    async def _request(self, method: str, path: str, body: Optional[dict] = None) -> dict:
        response = await self._client.request(method, path, json=body)
        if response.is_error:
            raise ApiError(f"[HTTP {response.status_code}] {response.text}", response.status_code)
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise ApiError(f"[CLIENT_PARSE_ERROR] {e} | raw: {response.text[:200]}") from e

    async def confirm_and_unlock(self, payload: dict) -> dict:
        logger.info(f"confirmAndUnlock payload: {payload}")
        return await self._request("POST", "/payments/confirm-and-unlock", payload)

    async def aclose(self) -> None:
        await self._client.aclose()
