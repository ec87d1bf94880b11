from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Final

from fastapi import APIRouter, HTTPException, Request
from starlette.responses import Response

from shopapp_core.deps import get_config, get_db_path
from shopapp_core.shopify.utils import sanitize_shop, validate_webhook_hmac

logger = logging.getLogger(__name__)

TOPIC_HEADER: Final[str] = "X-Shopify-Topic"
HMAC_HEADER: Final[str] = "X-Shopify-Hmac-Sha256"
SHOP_HEADER: Final[str] = "X-Shopify-Shop-Domain"
API_VERSION_HEADER: Final[str] = "X-Shopify-API-Version"
WEBHOOK_ID_HEADER: Final[str] = "X-Shopify-Webhook-Id"


class DeliveryMethod(StrEnum):
    HTTP = "http"


@dataclass(frozen=True)
class WebhookContext:
    topic: str
    shop: str
    body: str
    webhook_id: str | None
    api_version: str | None
    db_path: Path


WebhookCallback = Callable[[WebhookContext], Awaitable[None]]


@dataclass(frozen=True)
class WebhookHandler:
    delivery_method: DeliveryMethod
    callback_url: str
    callback: WebhookCallback


def normalize_topic(topic: str) -> str:
    """`customers/data_request` -> `CUSTOMERS_DATA_REQUEST`."""

    return topic.strip().upper().replace("/", "_").replace(".", "_")


async def process_webhook(
    request: Request, handlers: Mapping[str, WebhookHandler]
) -> Response:
    config = get_config(request).shopify
    raw_body = await request.body()

    topic = request.headers.get(TOPIC_HEADER)
    shop = sanitize_shop(request.headers.get(SHOP_HEADER))
    provided_hmac = request.headers.get(HMAC_HEADER)
    if not topic or not shop or not provided_hmac:
        raise HTTPException(status_code=400, detail="Missing one or more webhook headers")

    if not validate_webhook_hmac(raw_body, provided_hmac, config.api_secret):
        logger.warning("Rejected webhook %s from %s: HMAC mismatch", topic, shop)
        raise HTTPException(status_code=401, detail="Could not validate webhook HMAC")

    key = normalize_topic(topic)
    handler = handlers.get(key)
    if handler is None or handler.delivery_method is not DeliveryMethod.HTTP:
        raise HTTPException(status_code=404, detail=f"No HTTP webhook handler for topic {key}")

    try:
        body = raw_body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise HTTPException(status_code=400, detail="Webhook body is not valid UTF-8") from e

    ctx = WebhookContext(
        topic=key,
        shop=shop,
        body=body,
        webhook_id=request.headers.get(WEBHOOK_ID_HEADER),
        api_version=request.headers.get(API_VERSION_HEADER),
        db_path=get_db_path(request),
    )

    try:
        await handler.callback(ctx)
    except Exception as e:
        logger.exception("Webhook handler for %s failed", key)
        raise HTTPException(status_code=500, detail=f"Webhook handler failed: {e}") from e

    logger.info("Processed webhook %s for %s", key, shop)
    return Response(status_code=200)


def build_webhook_router(path: str, handlers: Mapping[str, WebhookHandler]) -> APIRouter:
    router = APIRouter(tags=["webhooks"])

    async def receive_webhook(request: Request) -> Response:
        return await process_webhook(request, handlers)

    router.add_api_route(path, receive_webhook, methods=["POST"], response_model=None)
    return router
