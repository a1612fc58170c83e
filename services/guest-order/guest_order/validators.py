"""
Guest Order Service — 事前条件チェック

ハンドラの前に実行され、失敗するとハンドラは実行されない。
main.py でルートの Depends として組み込む。
"""

import logging
from collections.abc import Sequence

from .errors import NoPermissionError, NotFoundError
from .gateways import CatalogGateway, OrganizationGateway
from .line_items import find_mismatches
from .models import ItemRequest
from .store import GuestOrderStore

logger = logging.getLogger(__name__)


async def organization_exists(
    organization_api: OrganizationGateway,
    org_id: str,
) -> dict:
    organization = await organization_api.get_organization_by_id(org_id)
    if not organization:
        raise NotFoundError(f"orgId {org_id} cannot be found")
    return organization


async def guest_order_belongs_to_organization(
    store: GuestOrderStore,
    organization_api: OrganizationGateway,
    org_id: str,
    order_id: str,
) -> None:
    """
    1. 組織が存在するか
    2. 注文が存在するか (組織スコープなしで取得)
    3. 注文の organizationId が組織の ID と一致するか
    """
    organization = await organization_exists(organization_api, org_id)

    order = await store.get_one_order(order_id)
    if order is None:
        raise NotFoundError(f"orderId {order_id} cannot be found")

    if order.organization_id != organization.get("id"):
        logger.warning("Order %s requested under organization %s", order_id, org_id)
        raise NoPermissionError(
            f"order: orderId={order_id} does not belong to organization: orgId={org_id}"
        )


async def product_contains_variant(
    catalog_api: CatalogGateway,
    org_id: str,
    items: Sequence[ItemRequest],
) -> None:
    """
    全明細の (productId, variantId) が組織の公開カタログに揃って存在するか。
    商品自体が無い場合とバリアントだけが無い場合でメッセージを分ける。
    """
    mismatches = await find_mismatches(catalog_api, org_id, items)
    if mismatches:
        raise mismatches[0].to_error()
