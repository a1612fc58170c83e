"""
Guest Order Service — コマンドハンドラ (Write 側)

ゲスト注文の作成:
  1. 明細をカタログと突き合わせて ProductItem に解決
  2. status=PENDING で注文を保存 (ボディの status は無視)
  3. 保存した注文を ID で読み直す (書き込みと読み取りはトランザクションで
     結ばれていないため)
  4. Redis Pub/Sub で GuestOrderCreated を発行 (失敗はログのみ)
  5. $expand に従って整形して返す
"""

import json
import logging
from datetime import datetime, timezone

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .config import CustomField
from .custom_fields import serialize_custom_fields
from .errors import InternalServerError
from .events import CHANNEL, GuestOrderCreated, GuestOrderLineItem
from .gateways import CatalogGateway, OrganizationGateway
from .line_items import resolve_line_items
from .models import CreateGuestOrderRequest, GuestOrderCreation, Status
from .normalizer import prepare_guest_order_response
from .store import GuestOrderStore

logger = logging.getLogger(__name__)


async def create_guest_order(
    store: GuestOrderStore,
    catalog_api: CatalogGateway,
    organization_api: OrganizationGateway,
    redis: aioredis.Redis,
    custom_field_definitions: list[CustomField],
    org_id: str,
    body: CreateGuestOrderRequest,
    query_expand: str = "",
) -> dict:
    logger.info("create_guest_order: orgId=%s items=%d", org_id, len(body.items))

    line_items = await resolve_line_items(catalog_api, org_id, body.items)

    guest_order_payload = GuestOrderCreation(
        cancel_reason=None,
        canceled_at=None,
        closed_at=None,
        custom_fields=serialize_custom_fields(
            body.custom_fields, custom_field_definitions
        ),
        customer=body.customer,
        line_items=line_items,
        organization_id=org_id,
        status=Status.PENDING,
    )

    created = await store.create_order(guest_order_payload)
    guest_order = await store.get_one_order(created["id"])
    if guest_order is None:
        logger.error("Order %s was not readable right after creation", created["id"])
        raise InternalServerError("operation failed to create order")

    event = GuestOrderCreated(
        order_id=guest_order.id,
        organization_id=guest_order.organization_id,
        line_items=[
            GuestOrderLineItem(
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=item.quantity,
            )
            for item in guest_order.line_items
        ],
        timestamp=datetime.now(timezone.utc),
    )
    # 注文は保存済み。発行に失敗しても作成自体は成功として返す
    try:
        await redis.publish(
            CHANNEL,
            json.dumps(
                {"event_type": "GuestOrderCreated", "data": event.model_dump(mode="json")},
                default=str,
            ),
        )
    except RedisError:
        logger.exception("Failed to publish GuestOrderCreated for order %s", guest_order.id)

    return await prepare_guest_order_response(
        query_expand,
        guest_order,
        custom_field_definitions,
        organization_api,
        catalog_api,
    )
