from __future__ import annotations

import json
import random

from shopapp_core.config import ShopifyConfig
from shopapp_core.shopify.clients import GraphqlClient
from shopapp_core.shopify.errors import GraphqlQueryError, ProductCreationError
from shopapp_core.shopify.session import ShopSession

DEFAULT_PRODUCTS_COUNT = 5

ADJECTIVES = [
    "autumn", "hidden", "bitter", "misty", "silent", "empty", "dry", "dark",
    "summer", "icy", "delicate", "quiet", "white", "cool", "spring", "winter",
    "patient", "twilight", "dawn", "crimson", "wispy", "weathered", "blue",
    "billowing", "broken", "cold", "damp", "falling", "frosty", "green", "long",
]  # fmt: skip

NOUNS = [
    "waterfall", "river", "breeze", "moon", "rain", "wind", "sea", "morning",
    "snow", "lake", "sunset", "pine", "shadow", "leaf", "dawn", "glitter",
    "forest", "hill", "cloud", "meadow", "sun", "glade", "bird", "brook",
    "butterfly", "bush", "dew", "dust", "field", "fire", "flower",
]  # fmt: skip

CREATE_PRODUCTS_MUTATION = """
mutation populateProduct($input: ProductInput!) {
  productCreate(input: $input) {
    product {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""


def random_title(rng: random.Random | None = None) -> str:
    r = rng or random
    return f"{r.choice(ADJECTIVES)} {r.choice(NOUNS)}"


def random_price(rng: random.Random | None = None) -> float:
    r = rng or random
    return round(r.random() * 10, 2)


async def create_products(
    session: ShopSession,
    config: ShopifyConfig,
    *,
    count: int = DEFAULT_PRODUCTS_COUNT,
    timeout: float = 30.0,
) -> None:
    """Populate the shop with `count` randomly named demo products, one at a time."""

    client = GraphqlClient(session, config, timeout=timeout)
    try:
        for _ in range(count):
            body = await client.query(
                CREATE_PRODUCTS_MUTATION,
                variables={
                    "input": {
                        "title": random_title(),
                        "variants": [{"price": random_price()}],
                    }
                },
            )
            user_errors = (
                ((body or {}).get("data") or {}).get("productCreate") or {}
            ).get("userErrors") or []
            if user_errors:
                messages = "; ".join(str(e.get("message")) for e in user_errors)
                raise ProductCreationError(messages)
    except GraphqlQueryError as e:
        raise ProductCreationError(f"{e}\n{json.dumps(e.response, indent=2)}") from e
