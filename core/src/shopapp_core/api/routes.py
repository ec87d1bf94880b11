from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from shopapp_core.api.models import ProductCreateResult
from shopapp_core.auth import require_shop_session
from shopapp_core.deps import get_config
from shopapp_core.shopify.clients import GraphqlClient, RestClient
from shopapp_core.shopify.product_creator import create_products
from shopapp_core.shopify.session import ShopSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"], dependencies=[Depends(require_shop_session)])

FETCH_PRODUCTS_QUERY = """
{
  products(first: 10) {
    edges {
      node {
        id
        title
      }
    }
  }
}
"""

FETCH_ORDERS_QUERY = """
{
  orders(first: 10) {
    edges {
      node {
        id
      }
    }
  }
}
"""


def _graphql(request: Request, session: ShopSession) -> GraphqlClient:
    config = get_config(request)
    return GraphqlClient(session, config.shopify, timeout=config.client.request_timeout_s)


def _rest(request: Request, session: ShopSession) -> RestClient:
    config = get_config(request)
    return RestClient(session, config.shopify, timeout=config.client.request_timeout_s)


@router.get("/products")
async def products_list(
    request: Request, session: ShopSession = Depends(require_shop_session)  # noqa: B008
) -> dict[str, Any]:
    products = await _graphql(request, session).query(FETCH_PRODUCTS_QUERY)
    return {"products": products}


@router.get("/orders")
async def orders_list(
    request: Request, session: ShopSession = Depends(require_shop_session)  # noqa: B008
) -> dict[str, Any]:
    orders = await _graphql(request, session).query(FETCH_ORDERS_QUERY)
    return {"orders": orders}


@router.get("/locations")
async def locations_list(
    request: Request, session: ShopSession = Depends(require_shop_session)  # noqa: B008
) -> Any:
    locations = await _rest(request, session).get("locations")
    logger.info("Fetched locations for %s", session.shop)
    return locations


@router.get("/products/count")
async def products_count(
    request: Request, session: ShopSession = Depends(require_shop_session)  # noqa: B008
) -> Any:
    return await _rest(request, session).get("products/count")


@router.get("/products/create", response_model=ProductCreateResult)
async def products_create(
    request: Request, session: ShopSession = Depends(require_shop_session)  # noqa: B008
) -> JSONResponse:
    config = get_config(request)
    status_code = 200
    error: str | None = None

    try:
        await create_products(
            session, config.shopify, timeout=config.client.request_timeout_s
        )
    except Exception as e:  # noqa: BLE001
        logger.warning("Failed to process products/create: %s", e)
        status_code = 500
        error = str(e)

    result = ProductCreateResult(success=status_code == 200, error=error)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


# Registered last so the session gate covers every other `/api/*` path as well.
@router.api_route(
    "/{rest:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
    response_model=None,
)
async def api_not_found(rest: str) -> None:
    raise HTTPException(status_code=404, detail="Not Found")
