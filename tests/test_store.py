from guest_order.config import PaginationConfiguration
from guest_order.filters import parse_paginated_list_query
from guest_order.models import (
    GuestOrderCreation,
    GuestOrderCustomer,
    ProductItem,
    Status,
)

from conftest import CUSTOMER, ORG_A, ORG_B

PAGINATION = PaginationConfiguration(default_page_size=2, max_page_size=10)


def _creation(organization_id=ORG_A, status=Status.PENDING, custom_fields=None):
    return GuestOrderCreation(
        organization_id=organization_id,
        line_items=[
            ProductItem(
                product_id="P1",
                product_name="Dummy Product",
                quantity=3,
                sku="SKU-P1-V1",
                variant_id="V1",
                variant_title="Dummy Variant S",
            )
        ],
        customer=GuestOrderCustomer.model_validate(CUSTOMER),
        status=status,
        custom_fields=custom_fields,
    )


async def test_create_and_get_one(store):
    created = await store.create_order(_creation(custom_fields={"note": "hi"}))

    order = await store.get_one_order(created["id"])

    assert order.id == created["id"]
    assert order.organization_id == ORG_A
    assert order.status == Status.PENDING
    assert order.cancel_reason is None
    assert order.canceled_at is None
    assert order.closed_at is None
    assert order.customer.name_kana == "ダミー"
    assert order.line_items[0].sku == "SKU-P1-V1"
    assert order.line_items[0].quantity == 3
    assert order.custom_fields == {"note": "hi"}
    assert order.created_at == order.updated_at


async def test_get_one_returns_none_for_unknown_id(store):
    assert await store.get_one_order("missing") is None


async def test_scoped_get_requires_matching_organization(store):
    created = await store.create_order(_creation(ORG_A))

    assert await store.get_one_guest_order_by_org_id(created["id"], ORG_A) is not None
    assert await store.get_one_guest_order_by_org_id(created["id"], ORG_B) is None


async def test_pagination_tokens(store):
    ids = [(await store.create_order(_creation()))["id"] for _ in range(5)]

    first = await store.get_paginated_guest_orders_by_org_id(
        ORG_A, parse_paginated_list_query({}, PAGINATION)
    )
    middle = await store.get_paginated_guest_orders_by_org_id(
        ORG_A, parse_paginated_list_query({"$skip": "2"}, PAGINATION)
    )
    last = await store.get_paginated_guest_orders_by_org_id(
        ORG_A, parse_paginated_list_query({"$skip": "4"}, PAGINATION)
    )

    assert (first.count, first.total, first.next_token, first.previous_token) == (
        2, 5, "2", None,
    )
    assert (middle.next_token, middle.previous_token) == ("4", "0")
    assert (last.count, last.next_token, last.previous_token) == (1, None, "2")

    seen = [o.id for page in (first, middle, last) for o in page.result]
    assert sorted(seen) == sorted(ids)


async def test_listing_is_scoped_even_with_or_filter(store):
    await store.create_order(_creation(ORG_A))
    await store.create_order(_creation(ORG_B))
    await store.create_order(_creation(ORG_B, status=Status.CLOSED))

    list_query = parse_paginated_list_query(
        {"$filter": "status eq 'PENDING' or status eq 'CLOSED'", "$top": "10"},
        PAGINATION,
    )
    page = await store.get_paginated_guest_orders_by_org_id(ORG_A, list_query)

    assert page.total == 1
    assert {o.organization_id for o in page.result} == {ORG_A}


async def test_filter_and_order_by(store):
    await store.create_order(_creation(status=Status.PENDING))
    await store.create_order(_creation(status=Status.CLOSED))
    await store.create_order(_creation(status=Status.ACCEPTED))

    closed = await store.get_paginated_guest_orders_by_org_id(
        ORG_A,
        parse_paginated_list_query({"$filter": "status eq 'CLOSED'"}, PAGINATION),
    )
    ordered = await store.get_paginated_guest_orders_by_org_id(
        ORG_A,
        parse_paginated_list_query({"$orderby": "status desc", "$top": "3"}, PAGINATION),
    )

    assert [o.status for o in closed.result] == [Status.CLOSED]
    assert [o.status for o in ordered.result] == [
        Status.PENDING,
        Status.CLOSED,
        Status.ACCEPTED,
    ]
