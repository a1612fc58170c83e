"""
Guest Order Service — 明細の解決 (Line-Item Resolver)

リクエストの (productId, variantId, quantity) を、組織の公開カタログと
突き合わせて ProductItem (スナップショット) に変換する。

カタログへの問い合わせは 1 回にまとめる:
    organizationId eq '<org>' and id in ['<p1>', '<p2>', ...]

同じ突き合わせ処理を 2 通りに使う:
  - validators.product_contains_variant … 不一致があれば作成前に拒否する(ゲート)
  - commands.create_guest_order         … 一致した明細を永続化用に生成する
"""

from collections.abc import Sequence
from dataclasses import dataclass

from .errors import NotFoundError, item_not_found
from .gateways import CatalogGateway
from .models import ItemRequest, ProductItem


@dataclass(frozen=True)
class ItemMismatch:
    """カタログと一致しなかった明細"""

    product_id: str
    variant_id: str
    product_missing: bool

    def to_error(self) -> NotFoundError:
        if self.product_missing:
            return item_not_found(self.product_id)
        return item_not_found(self.product_id, self.variant_id)


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def build_product_filter(organization_id: str, product_ids: Sequence[str]) -> str:
    id_list = ",".join(_quote(pid) for pid in product_ids)
    return f"organizationId eq {_quote(organization_id)} and id in [{id_list}]"


async def fetch_candidate_products(
    catalog: CatalogGateway,
    organization_id: str,
    items: Sequence[ItemRequest],
) -> list[dict]:
    """要求された商品 ID の公開商品をバリアント付きで一括取得する。"""
    product_ids = list(dict.fromkeys(item.product_id for item in items))
    if not product_ids:
        return []
    return await catalog.get_available_products(
        filter_expression=build_product_filter(organization_id, product_ids),
        top=len(product_ids),
        expand="variants",
    )


def match_items(
    items: Sequence[ItemRequest],
    products: Sequence[dict],
) -> tuple[list[ProductItem], list[ItemMismatch]]:
    """
    各明細を商品 ID → バリアント ID の順に突き合わせる。

    戻り値: (一致した明細 [入力順], 不一致の明細 [入力順])
    """
    products_by_id = {p["id"]: p for p in products}
    matched: list[ProductItem] = []
    mismatches: list[ItemMismatch] = []

    for item in items:
        product = products_by_id.get(item.product_id)
        if product is None:
            mismatches.append(
                ItemMismatch(item.product_id, item.variant_id, product_missing=True)
            )
            continue

        variant = next(
            (v for v in product.get("variants") or [] if v.get("id") == item.variant_id),
            None,
        )
        if variant is None:
            mismatches.append(
                ItemMismatch(item.product_id, item.variant_id, product_missing=False)
            )
            continue

        matched.append(
            ProductItem(
                product_id=item.product_id,
                product_name=product.get("name", ""),
                quantity=item.quantity,
                sku=variant.get("sku", ""),
                variant_id=item.variant_id,
                variant_title=variant.get("title", ""),
            )
        )

    return matched, mismatches


async def find_mismatches(
    catalog: CatalogGateway,
    organization_id: str,
    items: Sequence[ItemRequest],
) -> list[ItemMismatch]:
    products = await fetch_candidate_products(catalog, organization_id, items)
    _, mismatches = match_items(items, products)
    return mismatches


async def resolve_line_items(
    catalog: CatalogGateway,
    organization_id: str,
    items: Sequence[ItemRequest],
) -> list[ProductItem]:
    """
    全明細を解決する。1 件でも不一致があれば NotFound を送出し、
    何も返さない(部分的な注文は作らない)。
    """
    products = await fetch_candidate_products(catalog, organization_id, items)
    matched, mismatches = match_items(items, products)
    if mismatches:
        first = mismatches[0]
        raise item_not_found(first.product_id, first.variant_id)
    return matched
