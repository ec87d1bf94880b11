from __future__ import annotations

import logging
from typing import Any

import httpx

from shopapp_core.config import ShopifyConfig
from shopapp_core.shopify.errors import GraphqlQueryError, HttpResponseError
from shopapp_core.shopify.session import ShopSession

logger = logging.getLogger(__name__)

ACCESS_TOKEN_HEADER = "X-Shopify-Access-Token"


def admin_api_url(shop: str, api_version: str, path: str) -> str:
    return f"https://{shop}/admin/api/{api_version}/{path.lstrip('/')}"


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    body = _decode_body(response)
    message = f"Received an error response ({response.status_code}) from the platform"
    if isinstance(body, dict) and body.get("errors"):
        message += f": {body['errors']}"
    raise HttpResponseError(message, status_code=response.status_code, body=body)


class _AdminClient:
    def __init__(
        self,
        session: ShopSession,
        config: ShopifyConfig,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._session = session
        self._api_version = config.api_version
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            ACCESS_TOKEN_HEADER: self._session.access_token or "",
            "Accept": "application/json",
        }

    def _url(self, path: str) -> str:
        return admin_api_url(self._session.shop, self._api_version, path)


class GraphqlClient(_AdminClient):
    """Admin GraphQL API client bound to one session."""

    async def query(self, query: str, variables: dict[str, Any] | None = None) -> Any:
        payload: dict[str, Any] = {"query": query}
        if variables is not None:
            payload["variables"] = variables

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(
                self._url("graphql.json"), json=payload, headers=self._headers()
            )

        _raise_for_status(response)
        body = response.json()
        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            first = errors[0] if isinstance(errors, list) and errors else errors
            message = first.get("message") if isinstance(first, dict) else str(first)
            raise GraphqlQueryError(message or "GraphQL query returned errors", response=body)
        return body


class RestClient(_AdminClient):
    """Admin REST API client bound to one session."""

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        if not path.endswith(".json"):
            path = f"{path}.json"

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(self._url(path), params=params, headers=self._headers())

        _raise_for_status(response)
        return response.json()


async def exchange_code_for_token(
    *, shop: str, code: str, config: ShopifyConfig, timeout: float = 30.0
) -> dict[str, Any]:
    """Trade an OAuth authorization code for an access token."""

    url = f"https://{shop}/admin/oauth/access_token"
    payload = {
        "client_id": config.api_key,
        "client_secret": config.api_secret,
        "code": code,
    }

    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(url, json=payload, headers={"Accept": "application/json"})

    _raise_for_status(response)
    logger.info("Obtained access token for %s", shop)
    return response.json()
