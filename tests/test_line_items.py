import pytest

from guest_order.errors import NotFoundError
from guest_order.line_items import (
    build_product_filter,
    find_mismatches,
    match_items,
    resolve_line_items,
)
from guest_order.models import ItemRequest

from conftest import ORG_A, PRODUCTS


def _items(*triples):
    return [
        ItemRequest(product_id=p, variant_id=v, quantity=q) for p, v, q in triples
    ]


def test_build_product_filter_quotes_ids():
    assert (
        build_product_filter("org-1", ["P1", "O'Neil"])
        == "organizationId eq 'org-1' and id in ['P1','O''Neil']"
    )


def test_match_items_snapshots_catalog_fields_in_request_order():
    matched, mismatches = match_items(
        _items(("P2", "V3", 1), ("P1", "V2", 5), ("P1", "V1", 3)), PRODUCTS
    )

    assert mismatches == []
    assert [(i.product_id, i.variant_id, i.quantity) for i in matched] == [
        ("P2", "V3", 1),
        ("P1", "V2", 5),
        ("P1", "V1", 3),
    ]
    assert matched[1].product_name == "Dummy Product"
    assert matched[1].sku == "SKU-P1-V2"
    assert matched[1].variant_title == "Dummy Variant L"


def test_match_items_reports_missing_product_and_missing_variant():
    _, mismatches = match_items(_items(("PX", "V1", 1), ("P1", "V3", 1)), PRODUCTS)

    assert [(m.product_id, m.variant_id, m.product_missing) for m in mismatches] == [
        ("PX", "V1", True),
        ("P1", "V3", False),
    ]
    assert "variantId" not in mismatches[0].to_error().message
    assert "variantId=V3" in mismatches[1].to_error().message


async def test_resolve_line_items_queries_catalog_once(catalog):
    items = _items(("P1", "V1", 3), ("P1", "V2", 1), ("P2", "V3", 2))

    resolved = await resolve_line_items(catalog, ORG_A, items)

    assert len(resolved) == 3
    assert len(catalog.available_calls) == 1
    call = catalog.available_calls[0]
    assert call["top"] == 2
    assert call["expand"] == "variants"
    assert call["filter"] == "organizationId eq 'org-A' and id in ['P1','P2']"


async def test_resolve_line_items_fails_whole_request_on_one_bad_item(catalog):
    items = _items(("P1", "V1", 3), ("P1", "V3", 1))

    with pytest.raises(NotFoundError) as exc_info:
        await resolve_line_items(catalog, ORG_A, items)

    assert exc_info.value.http_status == 400
    assert "productId=P1 variantId=V3" in exc_info.value.message


async def test_resolve_line_items_rejects_product_from_other_organization(catalog):
    with pytest.raises(NotFoundError):
        await resolve_line_items(catalog, ORG_A, _items(("P9", "V9", 1)))


async def test_empty_items_skip_catalog(catalog):
    assert await resolve_line_items(catalog, ORG_A, []) == []
    assert await find_mismatches(catalog, ORG_A, []) == []
    assert catalog.available_calls == []
