"""
Guest Order Service — イベント定義

ゲスト注文の作成に成功したら guest_order_events チャネルに発行する。
イベントは過去形で命名し、不変(immutable)として扱う。
"""

from datetime import datetime

from pydantic import BaseModel

CHANNEL = "guest_order_events"


class GuestOrderLineItem(BaseModel):
    product_id: str
    variant_id: str
    quantity: int


class GuestOrderCreated(BaseModel):
    """ゲスト注文が作成された"""
    order_id: str
    organization_id: str
    line_items: list[GuestOrderLineItem]
    timestamp: datetime
