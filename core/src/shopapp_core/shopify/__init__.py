"""Platform integration: OAuth, session tokens, webhooks and Admin API clients."""

from shopapp_core.shopify.errors import (
    GraphqlQueryError,
    HttpResponseError,
    InvalidOAuthError,
    InvalidSessionTokenError,
    InvalidShopError,
    ProductCreationError,
    ShopifyError,
)
from shopapp_core.shopify.session import ShopSession

__all__ = [
    "GraphqlQueryError",
    "HttpResponseError",
    "InvalidOAuthError",
    "InvalidSessionTokenError",
    "InvalidShopError",
    "ProductCreationError",
    "ShopSession",
    "ShopifyError",
]
