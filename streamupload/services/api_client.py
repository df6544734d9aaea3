"""HTTP adapter for JSON API requests."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..models import HTTPMethod

logger = logging.getLogger(__name__)


def parse_json_object(data: bytes) -> Optional[Dict[str, Any]]:
    """Decode data as a JSON object; anything else yields None."""
    if not data:
        return None
    try:
        decoded = json.loads(data)
    except (ValueError, UnicodeDecodeError):
        logger.debug("Response body is not valid JSON (%d bytes)", len(data))
        return None
    if not isinstance(decoded, dict):
        logger.debug("Response JSON is a %s, expected an object", type(decoded).__name__)
        return None
    return decoded


def query_components(key: str, value: Any) -> List[Tuple[str, str]]:
    """
    Flatten a value into query pairs.

    Nested mappings become key[nested], sequences become key[] and booleans
    are rendered as 1/0.
    """
    components: List[Tuple[str, str]] = []

    if isinstance(value, dict):
        for nested_key, nested_value in value.items():
            components += query_components(f"{key}[{nested_key}]", nested_value)
    elif isinstance(value, (list, tuple)):
        for item in value:
            components += query_components(f"{key}[]", item)
    elif isinstance(value, bool):
        components.append((key, "1" if value else "0"))
    else:
        components.append((key, str(value)))

    return components


class HTTPAPIClient:
    """
    HTTP client adapter for JSON API calls.

    GET parameters are encoded in the query string, every other method
    sends them as a JSON body. Failures are logged and reported as None.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 60,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        return self

    async def __aexit__(self, *args):
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    def build_request(
        self,
        url: str,
        method: HTTPMethod,
        parameters: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Request:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")

        if method == HTTPMethod.GET:
            params = []
            for key, value in (parameters or {}).items():
                params += query_components(key, value)
            return self._client.build_request(
                method.value, url, params=params or None, headers=headers
            )

        return self._client.build_request(
            method.value, url, json=parameters or {}, headers=headers
        )

    async def request(
        self,
        url: str,
        method: HTTPMethod,
        parameters: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Send a request and decode the response as a JSON object.

        Args:
            url: Request URL (relative to base_url if one was given)
            method: HTTP method
            parameters: Query parameters (GET) or JSON body (others)
            headers: Extra headers; the client defaults apply otherwise

        Returns:
            Decoded JSON object, or None if the request failed or the body
            is not a JSON object
        """
        request = self.build_request(url, method, parameters, headers)

        try:
            response = await self._client.send(request)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method.value, url, exc)
            return None

        if not response.content:
            if response.status_code in (401, 403):
                logger.warning("%s %s not authorized (%d)", method.value, url, response.status_code)
            elif response.status_code in (406, 410):
                logger.warning("%s %s rejected (%d)", method.value, url, response.status_code)
            else:
                logger.debug("%s %s returned no content (%d)", method.value, url, response.status_code)
            return None

        return parse_json_object(response.content)
