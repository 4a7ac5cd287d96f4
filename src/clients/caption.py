import asyncio
from typing import Optional, Protocol

import httpx
from pydantic import TypeAdapter, ValidationError

from src.errors import DownstreamProtocolError, DownstreamUnavailable
from src.models.schemas import CaptionResult

# Raw downstream bodies are logged, not returned; keep log lines bounded
_BODY_EXCERPT_CHARS = 500

# A JSON null body decodes to no result and reads as an empty caption
_caption_result_adapter = TypeAdapter(Optional[CaptionResult])


class CaptionClient(Protocol):
    async def get_caption(self, image_base64: str, request_id: str) -> str:
        """Return the collaborator's caption (possibly empty) or raise CaptionServiceError."""
        ...


class HttpCaptionClient:
    """
    Caption client for the captioning service HTTP contract.

    POSTs {"image_base64": ...} to a fixed URL and expects 200 {"caption": ...}.
    The whole exchange is bounded by `timeout` seconds of wall-clock time.

    Args:
        url: Full URL of the captioning endpoint
        timeout: End-to-end timeout in seconds
        client: Optional pre-built httpx.AsyncClient (tests inject a MockTransport).
            When omitted the client is owned here and closed by aclose().
    """

    def __init__(
        self,
        url: str,
        timeout: float,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._owns_client = client is None
        self._client = (
            client
            if client is not None
            else httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        )

    async def get_caption(self, image_base64: str, request_id: str) -> str:
        try:
            response = await asyncio.wait_for(
                self._client.post(
                    self.url,
                    json={"image_base64": image_base64},
                    headers={"X-Request-ID": request_id},
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise DownstreamUnavailable(
                f"captioning service timed out after {self.timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise DownstreamUnavailable(
                f"request to captioning service failed: {type(e).__name__}: {e}"
            ) from e

        if response.status_code != 200:
            body = response.text[:_BODY_EXCERPT_CHARS]
            raise DownstreamProtocolError(
                f"captioning service returned {response.status_code}: {body}",
                status_code_received=response.status_code,
                body=body,
            )

        try:
            result = _caption_result_adapter.validate_json(response.content)
        except ValidationError as e:
            body = response.text[:_BODY_EXCERPT_CHARS]
            raise DownstreamProtocolError(
                f"failed to parse captioning service response: {e.error_count()} error(s)",
                status_code_received=response.status_code,
                body=body,
            ) from e

        if result is None:
            return ""
        return result.caption or ""

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
