"""
Guest Order Service — 注文ストア

ゲスト注文のスナップショットを guest_orders テーブルに保存する。
顧客・明細・カスタムフィールドは JSON 文字列としてドキュメント的に保持し、
絞り込み・並び替えに使う項目だけを列に持つ。

  create_order                           … 新規作成 (ID・タイムスタンプはストアが採番)
  get_one_order                          … ID のみで取得 (組織スコープなし)
  get_one_guest_order_by_org_id          … ID + 組織 ID で取得
  get_paginated_guest_orders_by_org_id   … 組織スコープのページング一覧

DB エラー (SQLAlchemyError) はそのまま送出する。
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from .filters import ListQuery
from .models import GuestOrder, GuestOrderCreation

SCHEMA = """
    CREATE TABLE IF NOT EXISTS guest_orders (
        id              VARCHAR(36)  PRIMARY KEY,
        organization_id VARCHAR(255) NOT NULL,
        status          VARCHAR(32)  NOT NULL,
        cancel_reason   TEXT,
        canceled_at     VARCHAR(64),
        closed_at       VARCHAR(64),
        customer        TEXT         NOT NULL,
        line_items      TEXT         NOT NULL,
        custom_fields   TEXT,
        created_at      VARCHAR(64)  NOT NULL,
        updated_at      VARCHAR(64)  NOT NULL
    )
"""

INDEX = """
    CREATE INDEX IF NOT EXISTS ix_guest_orders_organization_id
        ON guest_orders (organization_id)
"""


@dataclass
class PaginatedResult:
    result: list[GuestOrder]
    count: int
    total: int
    next_token: str | None = None
    previous_token: str | None = None


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _load_json(value):
    if value is None:
        return None
    return json.loads(value) if isinstance(value, str) else value


def _row_to_order(row) -> GuestOrder:
    return GuestOrder(
        id=str(row.id),
        organization_id=row.organization_id,
        status=row.status,
        cancel_reason=row.cancel_reason,
        canceled_at=row.canceled_at,
        closed_at=row.closed_at,
        customer=_load_json(row.customer),
        line_items=_load_json(row.line_items),
        custom_fields=_load_json(row.custom_fields),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class GuestOrderStore:
    """guest_orders テーブルへの読み書き"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def create_schema(self) -> None:
        async with self.session_factory() as session:
            await session.execute(text(SCHEMA))
            await session.execute(text(INDEX))
            await session.commit()

    async def create_order(self, order: GuestOrderCreation) -> dict:
        order_id = str(uuid4())
        now = datetime.now(timezone.utc).isoformat()

        async with self.session_factory() as session:
            await session.execute(
                text("""
                    INSERT INTO guest_orders
                        (id, organization_id, status, cancel_reason, canceled_at, closed_at,
                         customer, line_items, custom_fields, created_at, updated_at)
                    VALUES
                        (:id, :organization_id, :status, :cancel_reason, :canceled_at, :closed_at,
                         :customer, :line_items, :custom_fields, :now, :now)
                """),
                {
                    "id": order_id,
                    "organization_id": order.organization_id,
                    "status": order.status.value,
                    "cancel_reason": order.cancel_reason,
                    "canceled_at": _isoformat(order.canceled_at),
                    "closed_at": _isoformat(order.closed_at),
                    "customer": order.customer.model_dump_json(
                        by_alias=True, exclude_none=True
                    ),
                    "line_items": json.dumps(
                        [item.model_dump(by_alias=True) for item in order.line_items]
                    ),
                    "custom_fields": json.dumps(order.custom_fields)
                    if order.custom_fields is not None
                    else None,
                    "now": now,
                },
            )
            await session.commit()

        return {"id": order_id}

    async def get_one_order(self, order_id: str) -> GuestOrder | None:
        async with self.session_factory() as session:
            result = await session.execute(
                text("SELECT * FROM guest_orders WHERE id = :id"),
                {"id": order_id},
            )
            row = result.fetchone()
        return _row_to_order(row) if row else None

    async def get_one_guest_order_by_org_id(
        self, order_id: str, organization_id: str
    ) -> GuestOrder | None:
        async with self.session_factory() as session:
            result = await session.execute(
                text("""
                    SELECT * FROM guest_orders
                    WHERE id = :id AND organization_id = :organization_id
                """),
                {"id": order_id, "organization_id": organization_id},
            )
            row = result.fetchone()
        return _row_to_order(row) if row else None

    async def get_paginated_guest_orders_by_org_id(
        self,
        organization_id: str,
        list_query: ListQuery,
    ) -> PaginatedResult:
        """
        組織 ID を必ず AND 条件に加える。呼び出し側の $filter に
        'or' が含まれても括弧で閉じるのでスコープ外の注文は返らない。
        """
        where = "organization_id = :organization_id"
        params: dict = {"organization_id": organization_id}
        if list_query.filter is not None:
            where = f"{where} AND ({list_query.filter.sql})"
            params.update(list_query.filter.params)

        order_by = [f"{column} {direction}" for column, direction in list_query.order_by]
        if not any(column == "id" for column, _ in list_query.order_by):
            order_by.append("id ASC")

        offset = list_query.pagination.offset
        limit = list_query.pagination.limit

        async with self.session_factory() as session:
            total_result = await session.execute(
                text(f"SELECT COUNT(*) FROM guest_orders WHERE {where}"),
                params,
            )
            total = total_result.scalar_one()

            result = await session.execute(
                text(f"""
                    SELECT * FROM guest_orders
                    WHERE {where}
                    ORDER BY {", ".join(order_by)}
                    LIMIT :limit OFFSET :offset
                """),
                {**params, "limit": limit, "offset": offset},
            )
            orders = [_row_to_order(row) for row in result.fetchall()]

        return PaginatedResult(
            result=orders,
            count=len(orders),
            total=total,
            next_token=str(offset + limit) if offset + len(orders) < total else None,
            previous_token=str(max(offset - limit, 0)) if offset > 0 else None,
        )
