from __future__ import annotations

from typing import Any


class ShopifyError(Exception):
    """Base class for failures talking to (or authenticating against) the platform."""


class InvalidShopError(ShopifyError):
    pass


class InvalidOAuthError(ShopifyError):
    pass


class InvalidSessionTokenError(ShopifyError):
    pass


class HttpResponseError(ShopifyError):
    def __init__(self, message: str, *, status_code: int, body: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class GraphqlQueryError(ShopifyError):
    def __init__(self, message: str, *, response: Any) -> None:
        super().__init__(message)
        self.response = response


class ProductCreationError(ShopifyError):
    pass
