# remote.py
# Forwards calls for functions that live in another process.
#
# Wire contract: POST {name, args, handle} -> opaque JSON, returned verbatim.

import logging
from typing import Any

import httpx

from toolflow import config
from toolflow.errors import RemoteForwardingError

logger = logging.getLogger(__name__)


class RemoteForwarder:
    """
    Delegates invocation of remote descriptors to an HTTP collaborator.

    `transport` exists for tests (httpx.MockTransport); production callers
    leave it unset.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = config.REMOTE_TIMEOUT,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("RemoteForwarder requires a base URL.")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._transport = transport

    @classmethod
    def from_config(cls) -> "RemoteForwarder | None":
        """Build a forwarder from environment settings, or None if unconfigured."""
        if not config.HUB_URL:
            return None
        headers = {config.HEADER_REPO_TOKEN: config.REPO_TOKEN} if config.REPO_TOKEN else {}
        return cls(config.HUB_URL, headers=headers)

    @property
    def url(self) -> str:
        return f"{self._base_url}/functions/call"

    async def forward(self, name: str, args: list[Any], handle: str) -> Any:
        payload = {"name": name, "args": args, "handle": handle}
        logger.debug("Forwarding %s to %s", name, self.url)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, headers=self._headers, transport=self._transport
            ) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            raise RemoteForwardingError(
                f"Remote call for {name!r} failed with status {exc.response.status_code}."
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise RemoteForwardingError(f"Remote call for {name!r} failed: {exc}") from exc
