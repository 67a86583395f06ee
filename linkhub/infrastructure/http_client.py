# linkhub/infrastructure/http_client.py
import httpx
from typing import Optional


class ExternalAPIClient:
    """
    Thin httpx wrapper for calls to external platforms.
    Every request is bounded by `timeout`; transport errors propagate as httpx.HTTPError.
    """

    def __init__(self, timeout: float = 30, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def post_form(self, url, data, headers=None, auth=None) -> httpx.Response:
        async with self._client() as client:
            return await client.post(url, data=data, headers=headers, auth=auth)

    async def get(self, url, headers=None, params=None) -> httpx.Response:
        async with self._client() as client:
            return await client.get(url, headers=headers, params=params)
