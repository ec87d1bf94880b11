"""Mandatory privacy webhooks.

The platform delivers these to every public app. Payload shapes:

CUSTOMERS_DATA_REQUEST
    {"shop_id", "shop_domain", "orders_requested": [...],
     "customer": {"id", "email", "phone"}, "data_request": {"id"}}

CUSTOMERS_REDACT
    {"shop_id", "shop_domain", "customer": {"id", "email", "phone"},
     "orders_to_redact": [...]}

SHOP_REDACT
    {"shop_id", "shop_domain"}   (48 hours after uninstall)
"""

from __future__ import annotations

import json
import logging

from shopapp_core.db.sessions import delete_sessions_for_shop
from shopapp_core.shopify.webhooks import DeliveryMethod, WebhookContext, WebhookHandler

logger = logging.getLogger(__name__)


def _payload(ctx: WebhookContext) -> dict:
    data = json.loads(ctx.body or "{}")
    return data if isinstance(data, dict) else {}


async def customers_data_request(ctx: WebhookContext) -> None:
    payload = _payload(ctx)
    customer = payload.get("customer") or {}
    logger.info(
        "Customer data request from %s for customer %s", ctx.shop, customer.get("id")
    )


async def customers_redact(ctx: WebhookContext) -> None:
    payload = _payload(ctx)
    customer = payload.get("customer") or {}
    logger.info("Customer redact from %s for customer %s", ctx.shop, customer.get("id"))


async def shop_redact(ctx: WebhookContext) -> None:
    _payload(ctx)
    removed = delete_sessions_for_shop(ctx.db_path, ctx.shop)
    logger.info("Shop redact for %s; removed %d stored session(s)", ctx.shop, removed)


def gdpr_webhook_handlers(webhooks_path: str) -> dict[str, WebhookHandler]:
    return {
        "CUSTOMERS_DATA_REQUEST": WebhookHandler(
            delivery_method=DeliveryMethod.HTTP,
            callback_url=webhooks_path,
            callback=customers_data_request,
        ),
        "CUSTOMERS_REDACT": WebhookHandler(
            delivery_method=DeliveryMethod.HTTP,
            callback_url=webhooks_path,
            callback=customers_redact,
        ),
        "SHOP_REDACT": WebhookHandler(
            delivery_method=DeliveryMethod.HTTP,
            callback_url=webhooks_path,
            callback=shop_redact,
        ),
    }
