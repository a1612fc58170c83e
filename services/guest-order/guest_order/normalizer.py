"""
Guest Order Service — レスポンス整形 (Order Response Normalizer)

保存された注文を外部向けの形に変換する。$expand で指定されたフィールドだけ
参照 ID を実データに置き換える。

  $expand=organization                 organization を組織レコードに
  $expand=lineItems.product            lineItems[].product を商品レコードに
  $expand=lineItems.variant            lineItems[].variants を縮約したバリアントに
  $expand=customFields.<name>          json 型カスタムフィールドをデコード

1 注文につき カスタムフィールド / 組織 / 明細 の 3 つを並列に処理する。
明細の商品はカタログから毎回取得する(ライブデータ)。
"""

import asyncio
from collections.abc import Sequence

from .config import CustomField
from .custom_fields import expand_custom_fields
from .errors import item_not_found
from .gateways import CatalogGateway, OrganizationGateway
from .models import GuestOrder, ProductItem

CUSTOM_FIELDS_PREFIX = "customFields."


def parse_expand(query_expand: str | None) -> set[str]:
    if not query_expand:
        return set()
    return {field.strip() for field in query_expand.split(",") if field.strip()}


async def prepare_guest_order_response(
    query_expand: str | None,
    guest_order: GuestOrder | Sequence[GuestOrder],
    custom_field_definitions: list[CustomField],
    organization_api: OrganizationGateway,
    catalog_api: CatalogGateway,
) -> dict | list[dict]:
    """単一なら dict、リストなら同じ順序の list を返す。"""
    expand_fields = parse_expand(query_expand)

    if isinstance(guest_order, GuestOrder):
        return await prepare_guest_order(
            expand_fields,
            custom_field_definitions,
            guest_order,
            organization_api,
            catalog_api,
        )

    return list(
        await asyncio.gather(
            *(
                prepare_guest_order(
                    expand_fields,
                    custom_field_definitions,
                    order,
                    organization_api,
                    catalog_api,
                )
                for order in guest_order
            )
        )
    )


async def prepare_guest_order(
    expand_fields: set[str],
    custom_field_definitions: list[CustomField],
    guest_order: GuestOrder,
    organization_api: OrganizationGateway,
    catalog_api: CatalogGateway,
) -> dict:
    custom_fields, organization, line_items = await asyncio.gather(
        prepare_custom_fields(
            expand_fields, custom_field_definitions, guest_order.custom_fields
        ),
        prepare_organization(
            expand_fields, guest_order.organization_id, organization_api
        ),
        prepare_products(expand_fields, guest_order.line_items, catalog_api),
    )

    return {
        "cancelReason": guest_order.cancel_reason,
        "canceledAt": _isoformat(guest_order.canceled_at),
        "closedAt": _isoformat(guest_order.closed_at),
        "createdAt": _isoformat(guest_order.created_at),
        "customer": guest_order.customer.model_dump(by_alias=True, exclude_none=True),
        "customFields": custom_fields,
        "id": guest_order.id,
        "lineItems": line_items,
        # 展開結果が無ければ ID のまま
        "organization": organization if organization is not None else guest_order.organization_id,
        "status": guest_order.status.value,
        "updatedAt": _isoformat(guest_order.updated_at),
    }


async def prepare_products(
    expand_fields: set[str],
    line_items: Sequence[ProductItem],
    catalog_api: CatalogGateway,
) -> list[dict]:
    async def prepare_one(item: ProductItem) -> dict:
        expanded = {
            "productName": item.product_name,
            "quantity": item.quantity,
            "sku": item.sku,
            "variantTitle": item.variant_title,
            "product": item.product_id,
            "variants": item.variant_id,
        }
        product = await catalog_api.get_one_product(item.product_id, expand="variants")

        if "lineItems.product" in expand_fields:
            expanded["product"] = product

        if "lineItems.variant" in expand_fields:
            variants = (product or {}).get("variants") or []
            variant = next((v for v in variants if v.get("id") == item.variant_id), None)
            if variant is None:
                raise item_not_found(item.product_id, item.variant_id)
            expanded["variants"] = {
                "id": variant.get("id"),
                "description": variant.get("description"),
                "sku": variant.get("sku"),
                "title": variant.get("title"),
                "productId": variant.get("productId"),
            }

        return expanded

    return list(await asyncio.gather(*(prepare_one(item) for item in line_items)))


async def prepare_organization(
    expand_fields: set[str],
    organization_id: str,
    organization_api: OrganizationGateway,
) -> dict | None:
    if "organization" not in expand_fields:
        return None
    return await organization_api.get_organization_by_id(organization_id)


async def prepare_custom_fields(
    expand_fields: set[str],
    custom_field_definitions: list[CustomField],
    custom_fields: dict | None,
) -> dict | None:
    names_to_expand = {
        field[len(CUSTOM_FIELDS_PREFIX):]
        for field in expand_fields
        if field.startswith(CUSTOM_FIELDS_PREFIX)
    }
    if not names_to_expand:
        return custom_fields
    return expand_custom_fields(custom_fields, custom_field_definitions, names_to_expand)


def _isoformat(value) -> str | None:
    return value.isoformat() if value else None
