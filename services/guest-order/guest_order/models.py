"""
Guest Order Service — モデル定義

外部 JSON は camelCase、Python 側は snake_case。
alias_generator で両者を対応させる。

  CreateGuestOrderRequest  … POST ボディ (追加プロパティ禁止)
  ProductItem              … 永続化される明細 (作成時のスナップショット)
  GuestOrder               … 永続化される注文
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt
from pydantic.alias_generators import to_camel


class Status(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    CANCELED = "CANCELED"
    CLOSED = "CLOSED"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Request Models ───────────────────────────────


class GuestOrderCustomer(CamelModel):
    """注文に埋め込まれる顧客情報(値オブジェクト)"""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid", frozen=True
    )

    name: str = Field(min_length=1)
    name_kana: str = Field(min_length=1)
    address_line1: str = Field(min_length=1)
    address_line2: str | None = None
    address_line3: str | None = None
    phone: str = Field(min_length=1)
    email: str = Field(min_length=1)
    age: str | None = Field(default=None, pattern=r"^[0-9]*$")
    preferred_contact_method: str | None = None
    preferred_time_to_contact: str | None = None


class ItemRequest(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    product_id: str
    variant_id: str
    # true や "3" を 1 / 3 に変換させない
    quantity: StrictInt = Field(ge=1)


class CreateGuestOrderRequest(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    customer: GuestOrderCustomer
    items: list[ItemRequest] = Field(default_factory=list)
    # 受け付けるが無視する(作成時は常に PENDING)
    status: str | None = None
    custom_fields: dict[str, Any] | None = None


# ── Persisted Models ─────────────────────────────


class ProductItem(CamelModel):
    """作成時点のカタログから非正規化した明細。以後更新されない。"""

    product_id: str
    product_name: str
    quantity: int
    sku: str
    variant_id: str
    variant_title: str


class GuestOrderCreation(CamelModel):
    organization_id: str
    line_items: list[ProductItem]
    customer: GuestOrderCustomer
    status: Status
    cancel_reason: str | None = None
    canceled_at: datetime | None = None
    closed_at: datetime | None = None
    custom_fields: dict[str, Any] | None = None


class GuestOrder(GuestOrderCreation):
    id: str
    created_at: datetime
    updated_at: datetime
