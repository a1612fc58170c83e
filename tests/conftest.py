import re

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from guest_order.store import GuestOrderStore

ORG_A = "org-A"
ORG_B = "org-B"

PRODUCTS = [
    {
        "id": "P1",
        "name": "Dummy Product",
        "organizationId": ORG_A,
        "variants": [
            {
                "id": "V1",
                "description": "Small",
                "sku": "SKU-P1-V1",
                "title": "Dummy Variant S",
                "productId": "P1",
            },
            {
                "id": "V2",
                "description": "Large",
                "sku": "SKU-P1-V2",
                "title": "Dummy Variant L",
                "productId": "P1",
            },
        ],
    },
    {
        "id": "P2",
        "name": "Another Product",
        "organizationId": ORG_A,
        "variants": [
            {
                "id": "V3",
                "description": "Only",
                "sku": "SKU-P2-V3",
                "title": "Only Variant",
                "productId": "P2",
            },
        ],
    },
    {
        "id": "P9",
        "name": "Other Org Product",
        "organizationId": ORG_B,
        "variants": [
            {
                "id": "V9",
                "description": "Other",
                "sku": "SKU-P9-V9",
                "title": "Other Variant",
                "productId": "P9",
            },
        ],
    },
]

CUSTOMER = {
    "name": "Dummy Name",
    "nameKana": "ダミー",
    "addressLine1": "1-2-3 Dummy",
    "phone": "55-555-5555",
    "email": "Dummy@name.com",
}


class FakeCatalog:
    """Catalog Service の代役。呼び出しを記録する。"""

    def __init__(self, products):
        self.products = [dict(p) for p in products]
        self.available_calls = []
        self.one_product_calls = []

    async def get_available_products(self, filter_expression, top, expand="variants"):
        self.available_calls.append(
            {"filter": filter_expression, "top": top, "expand": expand}
        )
        org_id = re.search(r"organizationId eq '([^']*)'", filter_expression).group(1)
        ids = re.findall(r"'([^']*)'", filter_expression.split(" in ", 1)[1])
        return [
            p for p in self.products if p["organizationId"] == org_id and p["id"] in ids
        ][:top]

    async def get_one_product(self, product_id, expand="variants"):
        self.one_product_calls.append(product_id)
        return next((p for p in self.products if p["id"] == product_id), None)

    def remove_variant(self, product_id, variant_id):
        for product in self.products:
            if product["id"] == product_id:
                product["variants"] = [
                    v for v in product["variants"] if v["id"] != variant_id
                ]


class FakeOrganizations:
    def __init__(self, organizations):
        self.organizations = {o["id"]: o for o in organizations}
        self.calls = []

    async def get_organization_by_id(self, organization_id):
        self.calls.append(organization_id)
        return self.organizations.get(organization_id)


class FakeRedis:
    def __init__(self):
        self.published = []

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 1


@pytest.fixture()
def catalog():
    return FakeCatalog(PRODUCTS)


@pytest.fixture()
def organizations():
    return FakeOrganizations(
        [
            {"id": ORG_A, "name": "Organization A"},
            {"id": ORG_B, "name": "Organization B"},
        ]
    )


@pytest.fixture()
def redis():
    return FakeRedis()


@pytest.fixture()
def customer():
    return dict(CUSTOMER)


@pytest.fixture()
def session_factory(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'guest_orders.db'}", poolclass=NullPool
    )
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def store(session_factory):
    guest_order_store = GuestOrderStore(session_factory)
    await guest_order_store.create_schema()
    return guest_order_store
