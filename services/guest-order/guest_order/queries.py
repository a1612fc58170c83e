"""
Guest Order Service — クエリハンドラ (Read 側)

  get_guest_order                      … 組織スコープで 1 件取得
  list_guest_orders_for_organization   … 組織スコープのページング一覧
"""

import logging
from urllib.parse import quote

from .config import CustomField, PaginationConfiguration
from .errors import NotFoundError
from .filters import parse_paginated_list_query
from .gateways import CatalogGateway, OrganizationGateway
from .normalizer import prepare_guest_order_response
from .store import GuestOrderStore

logger = logging.getLogger(__name__)


async def get_guest_order(
    store: GuestOrderStore,
    catalog_api: CatalogGateway,
    organization_api: OrganizationGateway,
    custom_field_definitions: list[CustomField],
    org_id: str,
    order_id: str,
    query_expand: str = "",
) -> dict:
    logger.info("get_guest_order: orgId=%s orderId=%s", org_id, order_id)
    guest_order = await store.get_one_guest_order_by_org_id(order_id, org_id)
    if guest_order is None:
        raise NotFoundError("operation failed to get an order")

    return await prepare_guest_order_response(
        query_expand,
        guest_order,
        custom_field_definitions,
        organization_api,
        catalog_api,
    )


CARRIED_QUERY_OPTIONS = ("$filter", "$orderby", "$expand")


def build_link(
    base_url: str,
    token: str | None,
    limit: int,
    query: dict[str, str] | None = None,
) -> str:
    """
    ページ移動用のリンク。トークンが無ければ空文字。
    $filter / $orderby / $expand は次のページにも引き継ぐ。
    """
    if token is None:
        return ""
    link = f"{base_url}?$skip={token}&$top={limit}"
    for name in CARRIED_QUERY_OPTIONS:
        value = (query or {}).get(name)
        if value:
            link += f"&{name}={quote(value, safe='')}"
    return link


async def list_guest_orders_for_organization(
    store: GuestOrderStore,
    catalog_api: CatalogGateway,
    organization_api: OrganizationGateway,
    custom_field_definitions: list[CustomField],
    pagination_configuration: PaginationConfiguration,
    org_id: str,
    query: dict[str, str],
    base_url: str,
) -> dict:
    """
    base_url はリクエストの scheme://host/path。
    ページサイズ上限の超過はストアを呼ぶ前に拒否する。
    """
    logger.info("list_guest_orders_for_organization: orgId=%s", org_id)
    list_query = parse_paginated_list_query(query, pagination_configuration)

    paginated = await store.get_paginated_guest_orders_by_org_id(org_id, list_query)

    value = await prepare_guest_order_response(
        query.get("$expand", ""),
        paginated.result,
        custom_field_definitions,
        organization_api,
        catalog_api,
    )

    limit = list_query.pagination.limit
    return {
        "@nextLink": build_link(base_url, paginated.next_token, limit, query),
        "@previousLink": build_link(base_url, paginated.previous_token, limit, query),
        "count": paginated.count,
        "total": paginated.total,
        "value": value,
    }
