from __future__ import annotations
from typing import Protocol, Any, Mapping, Optional

import httpx


class AsyncHttpClient(Protocol):
    """
    The raw HTTP capability the transport depends on.
    httpx.AsyncClient satisfies it; tests pass one built over httpx.MockTransport.
    """

    def build_request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        content: Optional[Any] = None,
    ) -> httpx.Request:
        ...

    async def send(self, request: httpx.Request, *, stream: bool = False) -> httpx.Response:
        """
        Send one request. With stream=True only the headers are awaited and the
        body is left open for the caller to read and close.
        """
        ...

    async def aclose(self) -> None:
        ...
